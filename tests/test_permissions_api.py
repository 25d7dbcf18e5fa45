from insight_hub import db
from insight_hub.models import PageActionPermission


def _error(response):
    return response.get_json()["error"]


def test_requires_session(client, hub):
    for method, url in [
        ("get", "/api/permissions"),
        ("put", "/api/permissions"),
        ("post", "/api/permissions"),
        ("post", "/api/permissions/check"),
        ("get", "/api/permissions/me"),
    ]:
        response = getattr(client, method)(url, json={})
        assert response.status_code == 401, url
        assert _error(response)["code"] == "unauthorized"


def test_snapshot_readable_by_any_role(client, hub, login):
    login("admin")
    client.put(
        "/api/permissions",
        json={"pageId": hub.students_id, "role": "teacher", "actionName": "delete", "isAllowed": False},
    )
    client.post("/api/auth/logout")

    login("teacher1")
    response = client.get("/api/permissions?pageName=Students")
    assert response.status_code == 200
    data = response.get_json()
    assert data["permissions"]["Students"]["roles"] == {"teacher": {"delete": False}}
    assert data["permissions"]["Students"]["page_id"] == hub.students_id
    assert "manage_participants" in data["availableActions"]


def test_non_admin_cannot_write(client, hub, login):
    login("teacher1")
    response = client.put(
        "/api/permissions",
        json={"pageId": hub.students_id, "role": "teacher", "actionName": "delete", "isAllowed": True},
    )
    assert response.status_code == 403
    assert _error(response)["message"] == "Access denied. Admin role required."

    response = client.post(
        "/api/permissions",
        json={"pageId": hub.students_id, "role": "teacher", "actions": {"delete": True}},
    )
    assert response.status_code == 403


def test_admin_update_then_check(client, hub, login):
    login("admin")
    response = client.post(
        "/api/permissions/check",
        json={"pageName": "Students", "actionName": "delete", "userRole": "teacher"},
    )
    assert response.get_json()["canPerform"] is True

    response = client.put(
        "/api/permissions",
        json={"pageId": hub.students_id, "role": "teacher", "actionName": "delete", "isAllowed": False},
    )
    assert response.status_code == 200
    assert response.get_json() == {"success": True, "message": "Action permission revoked successfully"}

    response = client.post(
        "/api/permissions/check",
        json={"pageName": "Students", "actionName": "delete", "userRole": "teacher"},
    )
    assert response.get_json() == {
        "canPerform": False,
        "userRole": "teacher",
        "pageName": "Students",
        "actionName": "delete",
    }


def test_admin_role_matches_case_insensitively(client, app, hub, make_user, login):
    with app.app_context():
        make_user("boss", role="Admin")
    login("boss")
    response = client.put(
        "/api/permissions",
        json={"pageId": hub.students_id, "role": "teacher", "actionName": "export", "isAllowed": True},
    )
    assert response.status_code == 200


def test_put_validation_errors(client, hub, login):
    login("admin")
    cases = [
        ({"role": "teacher", "actionName": "delete", "isAllowed": False}, "pageId"),
        ({"pageId": hub.students_id, "actionName": "delete", "isAllowed": False}, "role"),
        ({"pageId": hub.students_id, "role": "teacher", "isAllowed": False}, "actionName"),
        ({"pageId": hub.students_id, "role": "teacher", "actionName": "delete"}, "isAllowed"),
        ({"pageId": hub.students_id, "role": "teacher", "actionName": "delete", "isAllowed": "false"}, "isAllowed"),
        ({"pageId": hub.students_id, "role": "janitor", "actionName": "delete", "isAllowed": False}, "role"),
        ({"pageId": hub.students_id, "role": "teacher", "actionName": "fly", "isAllowed": False}, "actionName"),
    ]
    for payload, field in cases:
        response = client.put("/api/permissions", json=payload)
        assert response.status_code == 400, payload
        assert _error(response)["field"] == field


def test_put_unknown_page_is_404(client, hub, login):
    login("admin")
    response = client.put(
        "/api/permissions",
        json={"pageId": 9999, "role": "teacher", "actionName": "delete", "isAllowed": False},
    )
    assert response.status_code == 404


def test_bulk_update(client, hub, login):
    login("admin")
    response = client.post(
        "/api/permissions",
        json={
            "pageId": hub.students_id,
            "role": "teacher",
            "actions": {"view": True, "delete": False, "export": False},
        },
    )
    assert response.status_code == 200
    data = response.get_json()
    assert data["message"] == "Bulk action permissions updated successfully for teacher"
    assert data["actions"] == {"view": True, "delete": False, "export": False}

    response = client.get(
        "/api/permissions/check?pageName=Students&actions=view,delete,export,update&userRole=teacher"
    )
    assert response.get_json()["permissions"] == {
        "view": True,
        "delete": False,
        "export": False,
        "update": True,
    }


def test_bulk_update_with_invalid_entry_writes_nothing(client, app, hub, login):
    login("admin")
    response = client.post(
        "/api/permissions",
        json={"pageId": hub.students_id, "role": "teacher", "actions": {"view": True, "delete": "nope"}},
    )
    assert response.status_code == 400
    assert _error(response)["field"] == "actions.delete"

    with app.app_context():
        assert db.session.query(PageActionPermission).count() == 0


def test_bulk_update_requires_actions_object(client, hub, login):
    login("admin")
    response = client.post(
        "/api/permissions",
        json={"pageId": hub.students_id, "role": "teacher", "actions": ["view"]},
    )
    assert response.status_code == 400


def test_check_defaults_to_own_role(client, hub, login):
    login("collector1")
    response = client.post("/api/permissions/check", json={"pageName": "System Admin", "actionName": "view"})
    assert response.get_json()["canPerform"] is False
    assert response.get_json()["userRole"] == "collector"

    response = client.get("/api/permissions/check?pageName=Dashboard&actions=view")
    assert response.get_json() == {
        "permissions": {"view": True},
        "userRole": "collector",
        "pageName": "Dashboard",
    }


def test_non_admin_cannot_check_other_roles(client, hub, login):
    login("teacher1")
    response = client.post(
        "/api/permissions/check",
        json={"pageName": "System Admin", "actionName": "view", "userRole": "admin"},
    )
    assert response.status_code == 403

    response = client.post(
        "/api/permissions/check",
        json={"pageName": "Students", "actionName": "view", "userRole": "Teacher"},
    )
    assert response.status_code == 200


def test_check_requires_page_and_actions(client, hub, login):
    login("teacher1")
    assert client.post("/api/permissions/check", json={"actionName": "view"}).status_code == 400
    assert client.get("/api/permissions/check?pageName=Students").status_code == 400
    assert client.get("/api/permissions/check?actions=view").status_code == 400


def test_my_permissions(client, hub, login):
    login("teacher1")
    response = client.get("/api/permissions/me")
    data = response.get_json()
    assert data["role"] == "teacher"
    assert set(data["permissions"]) == {"Dashboard", "Students", "Reports"}
    assert data["permissions"]["Students"]["delete"] is True


def test_non_json_body_rejected(client, hub, login):
    login("admin")
    response = client.put("/api/permissions", data="pageId=1", content_type="application/x-www-form-urlencoded")
    assert response.status_code == 400
    assert _error(response)["code"] == "validation_error"


def test_require_action_guards_views(app, client, hub, login):
    from insight_hub.permissions import require_action

    @app.route("/api/students/<int:student_id>", methods=["DELETE"])
    @require_action("Students", "delete")
    def delete_student(student_id):
        return {"deleted": student_id}

    assert client.delete("/api/students/7").status_code == 401

    login("admin")
    client.put(
        "/api/permissions",
        json={"pageId": hub.students_id, "role": "teacher", "actionName": "delete", "isAllowed": False},
    )
    assert client.delete("/api/students/7").get_json() == {"deleted": 7}
    client.post("/api/auth/logout")

    login("teacher1")
    response = client.delete("/api/students/7")
    assert response.status_code == 403
    assert response.get_json()["error"]["message"] == "Action 'delete' on 'Students' is not permitted."
