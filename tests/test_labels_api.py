class TestLabelsCRUD:
    def test_create_and_list_labels(self, client):
        res = client.post("/labels", json={"name": "work"})
        assert res.status_code == 201
        assert res.json() == {"id": 1, "name": "work"}

        client.post("/labels", json={"name": "home"})
        res_all = client.get("/labels")
        assert res_all.status_code == 200
        assert res_all.json() == [{"id": 1, "name": "work"}, {"id": 2, "name": "home"}]

    def test_duplicate_name_conflict(self, client):
        first = client.post("/labels", json={"name": "dup"}).json()
        res = client.post("/labels", json={"name": "dup"})
        assert res.status_code == 409
        assert res.json()["detail"] == f"Label already exists with id {first['id']}"
        assert [label["name"] for label in client.get("/labels").json()] == ["dup"]

    def test_create_label_validation_error(self, client):
        res = client.post("/labels", json={"name": ""})
        assert res.status_code == 400
        assert res.json().get("error") == "ValidationError"

    def test_delete_label(self, client):
        lid = client.post("/labels", json={"name": "gone"}).json()["id"]
        res = client.delete(f"/labels/{lid}")
        assert res.status_code == 204
        assert res.text == ""
        assert client.get("/labels").json() == []

        res_again = client.delete(f"/labels/{lid}")
        assert res_again.status_code == 404
        assert res_again.json()["detail"] == "Label not found"

    def test_delete_label_detaches_todos(self, client):
        keep = client.post("/labels", json={"name": "keep"}).json()
        drop = client.post("/labels", json={"name": "drop"}).json()
        todo = client.post("/todos", json={"text": "tagged", "labels": [keep["id"], drop["id"]]}).json()
        assert todo["labels"] == [keep, drop]

        assert client.delete(f"/labels/{drop['id']}").status_code == 204

        res = client.get(f"/todos/{todo['id']}")
        assert res.status_code == 200
        assert res.json()["labels"] == [keep]
        assert res.json()["text"] == "tagged"
