"""
Fitting endpoint tests: CRUD, background recomputation, confirmation links.

Tests:
1-5.   CRUD and automatic consumption refresh
6-10.  Public confirmation
11-13. Confirmation email
14-15. Token parsing
16-18. Size summary
"""

from unittest.mock import patch

import pytest

from calcost import models
from calcost.fittings import InvalidConfirmationToken, confirmation_url, parse_confirmation_token


def _project(client, headers):
    response = client.post("/api/projects/", json={
        "client_name": "Colegio Alemán",
        "project_name": "Deportivos",
        "quote_mode": "individual",
        "line_items": [{
            "id": "shirt",
            "name": "Polera deportiva",
            "material_items": [{"name": "Dri-FIT", "type": "Fabric", "quantity": 1.5, "unit_cost": 20}],
            "size_prices": {"S,M,L": True, "XL": True, "14": True},
        }],
    }, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["id"]


def _add_fitting(client, headers, project_id, size, email=None):
    response = client.post(f"/api/projects/{project_id}/fittings/", json={
        "person_name": f"Alumno {size}",
        "email": email,
        "sizes": {"shirt": size},
    }, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def _consumption(client, headers, project_id):
    return client.get(f"/api/projects/{project_id}/consumption", headers=headers).json()


# --- CRUD ---

def test_create_fitting_normalizes_sizes(client, auth_headers):
    """1. "S, M, L" is stored as "S,M,L"."""
    project_id = _project(client, auth_headers)
    fitting = _add_fitting(client, auth_headers, project_id, "S, M, L")
    assert fitting["sizes"] == {"shirt": "S,M,L"}
    assert fitting["confirmed"] is False


def test_fitting_writes_refresh_consumption(client, auth_headers):
    """2. Each added fitting updates the stored fabric totals."""
    project_id = _project(client, auth_headers)
    for size in ("S,M,L", "XL", "14"):
        _add_fitting(client, auth_headers, project_id, size)

    data = _consumption(client, auth_headers, project_id)
    assert data["total_fabric_length"] == 4.58
    assert data["total_fabric_cost"] == 91.5


def test_update_fitting_refreshes_consumption(client, auth_headers):
    """3. Changing a size changes the totals."""
    project_id = _project(client, auth_headers)
    fitting = _add_fitting(client, auth_headers, project_id, "S,M,L")

    response = client.patch(
        f"/api/projects/{project_id}/fittings/{fitting['id']}",
        json={"sizes": {"shirt": "XXL"}},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert _consumption(client, auth_headers, project_id)["total_fabric_length"] == 1.8


def test_delete_fitting_refreshes_consumption(client, auth_headers):
    """4. Removing the last fitting brings totals back to zero."""
    project_id = _project(client, auth_headers)
    fitting = _add_fitting(client, auth_headers, project_id, "XL")
    response = client.delete(f"/api/projects/{project_id}/fittings/{fitting['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert _consumption(client, auth_headers, project_id)["total_fabric_length"] == 0


def test_fittings_of_foreign_project(client, auth_headers, other_headers):
    """5. Another workshop cannot list or add fittings."""
    project_id = _project(client, auth_headers)
    assert client.get(f"/api/projects/{project_id}/fittings/", headers=other_headers).status_code == 404
    response = client.post(f"/api/projects/{project_id}/fittings/", json={"person_name": "X"}, headers=other_headers)
    assert response.status_code == 404


# --- Public confirmation ---

def test_confirm_fitting(client, auth_headers):
    """6. A valid link confirms the fitting."""
    project_id = _project(client, auth_headers)
    fitting = _add_fitting(client, auth_headers, project_id, "XL")

    response = client.post(f"/api/confirm-fitting/{project_id}_{fitting['id']}")
    assert response.status_code == 200
    assert response.json()["status"] == "success"
    assert response.json()["project_name"] == "Deportivos"

    listed = client.get(f"/api/projects/{project_id}/fittings/", headers=auth_headers).json()
    assert listed[0]["confirmed"] is True
    assert listed[0]["confirmed_at"] is not None


def test_confirm_twice_is_noop(client, auth_headers, db):
    """7. The second confirmation reports already_confirmed and changes nothing."""
    project_id = _project(client, auth_headers)
    fitting = _add_fitting(client, auth_headers, project_id, "XL")
    token = f"{project_id}_{fitting['id']}"

    client.post(f"/api/confirm-fitting/{token}")
    first = db.get(models.Fitting, fitting["id"]).confirmed_at
    db.expire_all()

    response = client.post(f"/api/confirm-fitting/{token}")
    assert response.status_code == 200
    assert response.json()["status"] == "already_confirmed"
    assert db.get(models.Fitting, fitting["id"]).confirmed_at == first


def test_confirm_unknown_fitting(client, auth_headers):
    """8. Unknown ids are 404."""
    project_id = _project(client, auth_headers)
    response = client.post(f"/api/confirm-fitting/{project_id}_deadbeef")
    assert response.status_code == 404


def test_confirm_malformed_token(client):
    """9. Tokens without a separator are 400."""
    response = client.post("/api/confirm-fitting/nonsense")
    assert response.status_code == 400


def test_confirmation_survives_recompute_failure(client, auth_headers):
    """10. A failing recomputation never fails the confirmation."""
    project_id = _project(client, auth_headers)
    fitting = _add_fitting(client, auth_headers, project_id, "XL")

    with patch("calcost.consumption.compute_consumption", side_effect=RuntimeError("boom")):
        response = client.post(f"/api/confirm-fitting/{project_id}_{fitting['id']}")
    assert response.status_code == 200
    assert response.json()["status"] == "success"


# --- Confirmation email ---

def test_send_confirmation(client, auth_headers):
    """11. The participant gets a link built from project and fitting ids."""
    project_id = _project(client, auth_headers)
    fitting = _add_fitting(client, auth_headers, project_id, "XL", email="alumno@colegio.bo")

    with patch("calcost.routers.fittings.send_email", return_value=True) as send:
        response = client.post(
            f"/api/projects/{project_id}/fittings/{fitting['id']}/send-confirmation",
            headers=auth_headers,
        )
    assert response.status_code == 200
    assert response.json()["confirmation_url"].endswith(f"/confirm-fitting/{project_id}_{fitting['id']}")
    to, subject, html = send.call_args[0]
    assert to == ["alumno@colegio.bo"]
    assert "Deportivos" in subject
    assert "Polera deportiva" in html


def test_send_confirmation_without_email(client, auth_headers):
    """12. A fitting with no address cannot be emailed."""
    project_id = _project(client, auth_headers)
    fitting = _add_fitting(client, auth_headers, project_id, "XL")
    response = client.post(
        f"/api/projects/{project_id}/fittings/{fitting['id']}/send-confirmation",
        headers=auth_headers,
    )
    assert response.status_code == 400


def test_send_confirmation_email_failure(client, auth_headers):
    """13. Email delivery failure is reported as 502."""
    project_id = _project(client, auth_headers)
    fitting = _add_fitting(client, auth_headers, project_id, "XL", email="alumno@colegio.bo")
    response = client.post(
        f"/api/projects/{project_id}/fittings/{fitting['id']}/send-confirmation",
        headers=auth_headers,
    )
    # RESEND_API_KEY is unset in tests
    assert response.status_code == 502


# --- Tokens ---

def test_token_round_trip():
    """14. confirmation_url embeds a token parse_confirmation_token reads back."""
    url = confirmation_url("abc123", "def456")
    assert url.endswith("/confirm-fitting/abc123_def456")
    assert parse_confirmation_token("abc123_def456") == ("abc123", "def456")


@pytest.mark.parametrize("token", ["", "abc", "_def", "abc_"])
def test_bad_tokens(token):
    """15. Malformed tokens raise InvalidConfirmationToken."""
    with pytest.raises(InvalidConfirmationToken):
        parse_confirmation_token(token)


# --- Size summary ---

def test_size_summary_counts_per_garment(client, auth_headers):
    """16. Participants are counted per size in ladder order, whatever the spelling."""
    project_id = _project(client, auth_headers)
    for size in ("XL", "s, m, l", "XL", "14"):
        _add_fitting(client, auth_headers, project_id, size)

    response = client.get(f"/api/projects/{project_id}/fittings/summary", headers=auth_headers)
    assert response.status_code == 200
    summary = response.json()
    assert len(summary) == 1
    assert summary[0]["garment_name"] == "Polera deportiva"
    assert summary[0]["sizes"] == {"14": 1, "S,M,L": 1, "XL": 2}
    assert list(summary[0]["sizes"]) == ["14", "S,M,L", "XL"]
    assert summary[0]["total"] == 4


def test_size_summary_ignores_unknown_garments(client, auth_headers):
    """17. Sizes recorded for garments no longer in the quote are left out."""
    project_id = _project(client, auth_headers)
    response = client.post(f"/api/projects/{project_id}/fittings/", json={
        "person_name": "Alumno",
        "sizes": {"shirt": "XXL", "pants": "14"},
    }, headers=auth_headers)
    assert response.status_code == 200

    summary = client.get(f"/api/projects/{project_id}/fittings/summary", headers=auth_headers).json()
    assert [entry["garment_id"] for entry in summary] == ["shirt"]
    assert summary[0]["sizes"] == {"XXL": 1}


def test_size_summary_without_fittings(client, auth_headers, other_headers):
    """18. Garments with no fittings list no sizes; other workshops get 404."""
    project_id = _project(client, auth_headers)
    summary = client.get(f"/api/projects/{project_id}/fittings/summary", headers=auth_headers).json()
    assert summary == [{"garment_id": "shirt", "garment_name": "Polera deportiva", "sizes": {}, "total": 0}]

    response = client.get(f"/api/projects/{project_id}/fittings/summary", headers=other_headers)
    assert response.status_code == 404
