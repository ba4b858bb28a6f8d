from conftest import login


def _session(name, focus, *exercises):
    return {
        "name": name,
        "focus": focus,
        "exercises": [{"name": e, "sets": 4, "reps": "10", "weight": 20, "rest": 90} for e in exercises],
    }


def test_workouts_are_replaced_on_save(client, trainer, make_student):
    student = make_student("Ana")
    url = f"/workouts/{student['id']}"

    first = client.put(url, json=[_session("Treino A", "Peito", "Supino", "Crucifixo")], headers=trainer["headers"])
    assert first.status_code == 200
    assert [w["name"] for w in first.json()] == ["Treino A"]

    second = client.put(
        url,
        json=[
            _session("Treino A", "Costas", "Remada"),
            _session("Treino B", "Pernas"),  # sem exercícios: ignorado
            _session("Treino C", "Pernas", "Agachamento", "Leg Press"),
        ],
        headers=trainer["headers"],
    )
    assert second.status_code == 200
    saved = client.get(url, headers=trainer["headers"]).json()
    assert [w["name"] for w in saved] == ["Treino A", "Treino C"]
    assert [e["name"] for e in saved[0]["exercises"]] == ["Remada"]
    assert [e["name"] for e in saved[1]["exercises"]] == ["Agachamento", "Leg Press"]
    assert saved[1]["exercises"][0]["category"] == "Pernas"
    assert saved[1]["exercises"][0]["rest"] == 90


def test_student_reads_workouts_newest_first(client, trainer, make_student):
    student = make_student("Ana")
    client.put(
        f"/workouts/{student['id']}",
        json=[_session("Treino A", "Peito", "Supino"), _session("Treino B", "Costas", "Remada")],
        headers=trainer["headers"],
    )
    resp = client.get(f"/workouts/{student['id']}?newest_first=true", headers=student["headers"])
    assert resp.status_code == 200
    assert [w["name"] for w in resp.json()] == ["Treino B", "Treino A"]


def test_blank_workout_name_is_rejected(client, trainer, make_student):
    student = make_student("Ana")
    resp = client.put(f"/workouts/{student['id']}", json=[_session("   ", "Peito", "Supino")],
                      headers=trainer["headers"])
    assert resp.status_code == 400


def test_students_cannot_write_workouts(client, make_student):
    student = make_student("Ana")
    resp = client.put(f"/workouts/{student['id']}", json=[_session("Treino A", "Peito", "Supino")],
                      headers=student["headers"])
    assert resp.status_code == 403


def test_student_cannot_read_another_students_plan(client, make_student):
    a = make_student("Ana")
    b = make_student("Beto")
    assert client.get(f"/workouts/{b['id']}", headers=a["headers"]).status_code == 403
    assert client.get(f"/meal-plans/{b['id']}/latest", headers=a["headers"]).status_code == 403


def test_meal_plan_latest(client, trainer, make_student):
    student = make_student("Ana")
    url = f"/meal-plans/{student['id']}"

    assert client.get(f"{url}/latest", headers=student["headers"]).json() is None

    plan = {
        "macros": {"calories": 2500, "protein": 180, "carbs": 250, "fat": 70},
        "meals": [
            {"name": "Café", "time": "07:00", "foods": [{"name": "Ovos", "amount": "3 un", "calories": 210}]},
            {"name": "Almoço", "time": "12:00", "foods": []},
        ],
    }
    assert client.post(url, json=plan, headers=trainer["headers"]).status_code == 201

    newer = {"meals": [{"name": "Jantar", "time": "20:00", "foods": [{"name": "Frango"}]}]}
    resp = client.post(url, json=newer, headers=trainer["headers"])
    assert resp.status_code == 201

    latest = client.get(f"{url}/latest", headers=student["headers"]).json()
    assert latest["id"] == resp.json()["id"]
    assert latest["macros"] == {"calories": 2000, "protein": 160, "carbs": 200, "fat": 60}
    assert [m["name"] for m in latest["meals"]] == ["Jantar"]
    assert latest["meals"][0]["foods"][0] == {
        "id": latest["meals"][0]["foods"][0]["id"], "name": "Frango", "amount": "A gosto", "calories": 0,
    }


def test_meal_plan_needs_a_named_meal(client, trainer, make_student):
    student = make_student("Ana")
    url = f"/meal-plans/{student['id']}"
    assert client.post(url, json={"meals": []}, headers=trainer["headers"]).status_code == 422
    assert client.post(url, json={"meals": [{"name": " "}]}, headers=trainer["headers"]).status_code == 400
    assert client.get(f"{url}/latest", headers=trainer["headers"]).json() is None


def test_other_trainer_cannot_touch_the_plan(client, trainer, make_student):
    student = make_student("Ana")
    email = "rival-" + trainer["email"]
    client.post("/auth/register", json={"email": email, "password": "secret123", "name": "Rival"})
    rival = login(client, email)
    resp = client.post(f"/meal-plans/{student['id']}", json={"meals": [{"name": "Café"}]}, headers=rival)
    assert resp.status_code == 403
