"""
Tests d'intégration API pour les soldats.
GET    /api/v1/soldiers                       — liste
POST   /api/v1/soldiers                       — création
POST   /api/v1/soldiers/upload                — import Excel
GET    /api/v1/soldiers/{id}                  — détail
PUT    /api/v1/soldiers/{id}                  — mise à jour
DELETE /api/v1/soldiers/{id}                  — suppression
POST   /api/v1/soldiers/{id}/unlock           — déblocage
PUT    /api/v1/soldiers/{id}/profile-picture  — photo de profil
"""

import io
import uuid
from datetime import date
from unittest.mock import patch

import openpyxl
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from roster.database import Base, get_db
from roster.main import app
from roster.models.soldier import Authority, Soldier
from roster.schemas.soldier import Principal, SoldierImportReport
from roster.security import hash_password


# --- Helpers ---

def make_soldier(**kwargs) -> Soldier:
    return Soldier(
        id=kwargs.get("id", uuid.uuid4()),
        generation=kwargs.get("generation", 30),
        battalion="1",
        company="2",
        platoon="3",
        platoon_num=kwargs.get("platoon_num", "1001"),
        name=kwargs.get("name", "Kim Minsu"),
        birthday=date(2000, 3, 15),
        phone_number="010-1234-5678",
        home_tel=None,
        password=kwargs.get("password", "hash"),
        profile_picture_path=kwargs.get("profile_picture_path"),
        log_in_fail_cnt=kwargs.get("log_in_fail_cnt", 0),
        authority=kwargs.get("authority", Authority.ROLE_SOLDIER),
    )


def manager() -> Principal:
    return Principal(soldier_id=uuid.uuid4(), platoon_num="0001", authority=Authority.ROLE_MANAGER)


def owner(soldier: Soldier) -> Principal:
    return Principal(soldier_id=soldier.id, platoon_num=soldier.platoon_num, authority=soldier.authority)


SOLDIER_PAYLOAD = {
    "generation": 30,
    "battalion": "1",
    "company": "2",
    "platoon": "3",
    "platoon_num": "1001",
    "name": "Kim Minsu",
    "birthday": "2000-03-15",
    "phone_number": "010-1234-5678",
}


# ============================================================
# Authentification HTTP Basic
# ============================================================

def test_sans_identifiants_401(client):
    response = client.get("/api/v1/soldiers")
    assert response.status_code == 401


def test_identifiants_inconnus_401(client, mock_db):
    mock_db.execute.return_value.scalar_one_or_none.return_value = None

    response = client.get("/api/v1/soldiers", auth=("0000", "secret"))

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Basic"


def test_compte_bloque_423(client, mock_db):
    mock_db.execute.return_value.scalar_one_or_none.return_value = make_soldier(log_in_fail_cnt=5)

    response = client.get("/api/v1/soldiers", auth=("1001", "000315"))

    assert response.status_code == 423


def test_identifiants_valides_basic(client, mock_db):
    """Un manager authentifié en HTTP Basic peut lister les soldats."""
    admin = make_soldier(platoon_num="0001", password=hash_password("Admin!123"),
                         authority=Authority.ROLE_MANAGER)
    mock_db.execute.return_value.scalar_one_or_none.return_value = admin
    mock_db.execute.return_value.scalars.return_value.all.return_value = [admin]

    response = client.get("/api/v1/soldiers", auth=("0001", "Admin!123"))

    assert response.status_code == 200
    assert response.json()[0]["platoon_num"] == "0001"


# ============================================================
# GET /api/v1/soldiers
# ============================================================

def test_liste_triee_par_generation(client, mock_db, login_as):
    login_as(manager())
    mock_db.execute.return_value.scalars.return_value.all.return_value = [
        make_soldier(generation=31), make_soldier(generation=30), make_soldier(generation=29),
    ]

    response = client.get("/api/v1/soldiers")

    assert response.status_code == 200
    assert [s["generation"] for s in response.json()] == [31, 30, 29]


@pytest.fixture
def sqlite_client():
    """Client HTTP adossé à une vraie base SQLite en mémoire (tri effectué par le SGBD)."""
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    engine.dispose()


def test_liste_insertion_30_31_29_renvoyee_31_30_29(sqlite_client, login_as):
    login_as(manager())
    for generation, platoon_num in ((30, "3001"), (31, "3101"), (29, "2901")):
        payload = {**SOLDIER_PAYLOAD, "generation": generation, "platoon_num": platoon_num}
        assert sqlite_client.post("/api/v1/soldiers", json=payload).status_code == 201

    response = sqlite_client.get("/api/v1/soldiers")

    assert response.status_code == 200
    assert [s["generation"] for s in response.json()] == [31, 30, 29]


def test_liste_sans_mot_de_passe(client, mock_db, login_as):
    login_as(manager())
    mock_db.execute.return_value.scalars.return_value.all.return_value = [make_soldier()]

    item = client.get("/api/v1/soldiers").json()[0]

    assert "password" not in item
    assert "id" in item
    assert "platoon_num" in item


def test_liste_interdite_au_soldat(client, login_as):
    login_as(owner(make_soldier()))

    response = client.get("/api/v1/soldiers")

    assert response.status_code == 403


# ============================================================
# POST /api/v1/soldiers
# ============================================================

def test_create_soldier_succes(client, mock_db, login_as):
    login_as(manager())

    response = client.post("/api/v1/soldiers", json=SOLDIER_PAYLOAD)

    assert response.status_code == 201
    data = response.json()
    assert data["platoon_num"] == "1001"
    assert data["authority"] == "ROLE_SOLDIER"
    assert data["log_in_fail_cnt"] == 0
    mock_db.add.assert_called_once()


def test_create_soldier_duplique_409(client, mock_db, login_as):
    login_as(manager())
    mock_db.execute.return_value.scalar_one_or_none.return_value = make_soldier(platoon_num="1001")

    response = client.post("/api/v1/soldiers", json=SOLDIER_PAYLOAD)

    assert response.status_code == 409


def test_create_soldier_nom_vide_422(client, login_as):
    login_as(manager())

    response = client.post("/api/v1/soldiers", json={**SOLDIER_PAYLOAD, "name": "  "})

    assert response.status_code == 422


def test_create_soldier_interdit_au_soldat(client, login_as):
    login_as(owner(make_soldier()))

    response = client.post("/api/v1/soldiers", json=SOLDIER_PAYLOAD)

    assert response.status_code == 403


# ============================================================
# GET / PUT / DELETE /api/v1/soldiers/{id}
# ============================================================

def test_get_soldier_par_lui_meme(client, mock_db, login_as):
    soldier = make_soldier()
    login_as(owner(soldier))
    mock_db.get.return_value = soldier

    response = client.get(f"/api/v1/soldiers/{soldier.id}")

    assert response.status_code == 200
    assert response.json()["id"] == str(soldier.id)


def test_get_soldier_inexistant_404(client, mock_db, login_as):
    login_as(owner(make_soldier()))
    mock_db.get.return_value = None

    response = client.get(f"/api/v1/soldiers/{uuid.uuid4()}")

    assert response.status_code == 404


def test_get_autre_soldat_403(client, mock_db, login_as):
    login_as(owner(make_soldier()))
    mock_db.get.return_value = make_soldier(platoon_num="2002")

    response = client.get(f"/api/v1/soldiers/{uuid.uuid4()}")

    assert response.status_code == 403


def test_update_soldier_telephone(client, mock_db, login_as):
    soldier = make_soldier()
    login_as(owner(soldier))
    mock_db.get.return_value = soldier
    mock_db.execute.return_value.scalar_one_or_none.return_value = soldier

    response = client.put(f"/api/v1/soldiers/{soldier.id}", json={"phone_number": "010-0000-0000"})

    assert response.status_code == 200
    assert response.json()["phone_number"] == "010-0000-0000"


def test_update_mot_de_passe_sans_actuel_400(client, mock_db, login_as):
    soldier = make_soldier()
    login_as(owner(soldier))
    mock_db.get.return_value = soldier

    response = client.put(f"/api/v1/soldiers/{soldier.id}", json={"password": "Nouveau!123"})

    assert response.status_code == 400


def test_update_null_sur_champ_obligatoire_422(client, mock_db, login_as):
    soldier = make_soldier()
    login_as(owner(soldier))
    mock_db.get.return_value = soldier

    response = client.put(
        f"/api/v1/soldiers/{soldier.id}",
        json={"generation": -7, "name": None, "phone_number": None},
    )

    assert response.status_code == 422
    assert soldier.name == "Kim Minsu"
    mock_db.commit.assert_not_called()


def test_update_unite_avec_chemin_relatif_422(client, mock_db, login_as):
    soldier = make_soldier()
    login_as(owner(soldier))
    mock_db.get.return_value = soldier

    response = client.put(f"/api/v1/soldiers/{soldier.id}", json={"battalion": "../../../escaped"})

    assert response.status_code == 422
    assert soldier.battalion == "1"
    mock_db.commit.assert_not_called()

def test_delete_soldier_204(client, mock_db, login_as):
    soldier = make_soldier()
    login_as(manager())
    mock_db.get.return_value = soldier

    response = client.delete(f"/api/v1/soldiers/{soldier.id}")

    assert response.status_code == 204
    mock_db.delete.assert_called_once_with(soldier)


def test_delete_soldier_inexistant_404(client, mock_db, login_as):
    login_as(owner(make_soldier()))
    mock_db.get.return_value = None

    response = client.delete(f"/api/v1/soldiers/{uuid.uuid4()}")

    assert response.status_code == 404


def test_unlock_soldier(client, mock_db, login_as):
    soldier = make_soldier(log_in_fail_cnt=5)
    login_as(manager())
    mock_db.get.return_value = soldier

    response = client.post(f"/api/v1/soldiers/{soldier.id}/unlock")

    assert response.status_code == 200
    assert response.json()["log_in_fail_cnt"] == 0


# ============================================================
# POST /api/v1/soldiers/upload
# ============================================================

def make_xlsx_bytes() -> bytes:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.append(["기수", "대대", "중대", "소대", "소대번호", "이름", "생년월일", "전화번호", "집전화"])
    sheet.append([30, 1, 2, 3, 1001, "Kim Minsu", date(2000, 3, 15), "010-1234-5678", None])
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def test_upload_xlsx(client, mock_db, login_as):
    login_as(manager())
    mock_db.execute.return_value.scalars.return_value.all.return_value = []

    response = client.post(
        "/api/v1/soldiers/upload",
        files={"file": ("soldats.xlsx", make_xlsx_bytes(),
                        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")},
    )

    assert response.status_code == 200
    assert response.json()["inserted"] == 1


def test_upload_delegue_au_service(client, login_as):
    login_as(manager())
    report = SoldierImportReport(total_rows=2, inserted=1, skipped_duplicates=1, skipped_platoon_nums=["1002"])

    with patch("roster.routers.soldiers.soldier_import.import_soldiers", return_value=report) as mock_import:
        response = client.post("/api/v1/soldiers/upload", files={"file": ("s.xls", b"contenu", "application/vnd.ms-excel")})

    assert response.status_code == 200
    assert response.json()["skipped_platoon_nums"] == ["1002"]
    assert mock_import.call_args[0][1:] == ("s.xls", b"contenu")


def test_upload_csv_refuse(client, login_as):
    login_as(manager())

    response = client.post("/api/v1/soldiers/upload", files={"file": ("s.csv", b"a,b", "text/csv")})

    assert response.status_code == 400


def test_upload_sans_fichier_400(client, login_as):
    login_as(manager())

    response = client.post("/api/v1/soldiers/upload")

    assert response.status_code == 400


def test_upload_cellule_invalide_422(client, mock_db, login_as):
    login_as(manager())
    workbook = openpyxl.Workbook()
    workbook.active.append(["entête"])
    workbook.active.append(["trente", 1, 2, 3, 1001, "Kim", date(2000, 3, 15), "010", None])
    buffer = io.BytesIO()
    workbook.save(buffer)

    response = client.post("/api/v1/soldiers/upload", files={"file": ("s.xlsx", buffer.getvalue(), "application/octet-stream")})

    assert response.status_code == 422
    assert "génération" in response.json()["detail"]
    mock_db.add_all.assert_not_called()


def test_upload_interdit_au_soldat(client, login_as):
    login_as(owner(make_soldier()))

    response = client.post("/api/v1/soldiers/upload", files={"file": ("s.xlsx", b"x", "application/octet-stream")})

    assert response.status_code == 403


# ============================================================
# Photo de profil
# ============================================================

def test_profile_picture_upload_puis_lecture(client, mock_db, login_as, tmp_path):
    soldier = make_soldier()
    login_as(owner(soldier))
    mock_db.get.return_value = soldier

    with patch("roster.services.file_storage.settings.UPLOAD_DIR", str(tmp_path)):
        response = client.put(
            f"/api/v1/soldiers/{soldier.id}/profile-picture",
            files=[("files", ("moi.png", b"\x89PNG-fake", "image/png"))],
        )

    assert response.status_code == 200
    path = response.json()["profile_picture_path"]
    assert path.startswith(str(tmp_path / "profile" / "30" / "1-2-3"))

    response = client.get(f"/api/v1/soldiers/{soldier.id}/profile-picture")

    assert response.status_code == 200
    assert response.content == b"\x89PNG-fake"


def test_profile_picture_absente_404(client, mock_db, login_as):
    soldier = make_soldier()
    login_as(owner(soldier))
    mock_db.get.return_value = soldier

    response = client.get(f"/api/v1/soldiers/{soldier.id}/profile-picture")

    assert response.status_code == 404


def test_profile_picture_extension_refusee(client, mock_db, login_as, tmp_path):
    soldier = make_soldier()
    login_as(owner(soldier))
    mock_db.get.return_value = soldier

    with patch("roster.services.file_storage.settings.UPLOAD_DIR", str(tmp_path)):
        response = client.put(
            f"/api/v1/soldiers/{soldier.id}/profile-picture",
            files=[("files", ("virus.exe", b"MZ", "application/octet-stream"))],
        )

    assert response.status_code == 400
    assert soldier.profile_picture_path is None
