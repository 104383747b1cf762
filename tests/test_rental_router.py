from tennisflow.models.rental import RentalOrder


class TestCreateRentalRoute:
    """대여 생성 API 테스트"""

    def test_create_and_replay_with_idempotency_key(self, client, db, make_user, make_racket, auth_headers):
        user = make_user(balance=1000)
        racket = make_racket(deposit=300, fee_d7=900)
        payload = {"racket_id": racket.id, "days": 7, "points_to_use": 1000}
        headers = {**auth_headers(user), "Idempotency-Key": "rental-abc"}

        first = client.post("/api/v1/rentals", json=payload, headers=headers)
        second = client.post("/api/v1/rentals", json=payload, headers=headers)

        assert first.status_code == 201
        assert first.json()["meta"] == {"replayed": False}
        rental = first.json()["data"]["rental"]
        assert rental["points_used"] == 900
        assert rental["total"] == 300
        assert second.status_code == 200
        assert second.json()["meta"] == {"replayed": True}
        assert second.json()["data"]["rental"]["id"] == rental["id"]
        assert db.query(RentalOrder).count() == 1

    def test_idempotency_key_of_another_user_returns_409(self, client, db, make_user, make_racket, auth_headers):
        owner = make_user()
        other = make_user()
        racket = make_racket(quantity=2)
        payload = {"racket_id": racket.id, "days": 7}

        first = client.post(
            "/api/v1/rentals",
            json=payload,
            headers={**auth_headers(owner), "Idempotency-Key": "rental-shared"},
        )
        second = client.post(
            "/api/v1/rentals",
            json=payload,
            headers={**auth_headers(other), "Idempotency-Key": "rental-shared"},
        )

        assert first.status_code == 201
        assert second.status_code == 409
        body = second.json()
        assert body["success"] is False
        assert body["error"]["code"] == "IDEMPOTENCY_KEY_REUSED"
        assert "rental" not in body
        assert db.query(RentalOrder).count() == 1

    def test_guest_rental_without_token(self, client, make_racket):
        racket = make_racket()

        response = client.post("/api/v1/rentals", json={"racket_id": racket.id, "days": 15})

        assert response.status_code == 201
        assert response.json()["data"]["rental"]["user_id"] is None

    def test_insufficient_points_is_conflict(self, client, db, make_user, make_racket, auth_headers):
        user = make_user(balance=100)
        racket = make_racket()

        response = client.post(
            "/api/v1/rentals",
            json={"racket_id": racket.id, "days": 7, "points_to_use": 500},
            headers=auth_headers(user),
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INSUFFICIENT_POINTS"
        assert db.query(RentalOrder).count() == 0

    def test_invalid_days(self, client, make_racket):
        racket = make_racket()

        response = client.post("/api/v1/rentals", json={"racket_id": racket.id, "days": 10})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_001"


class TestRentalTransitionRoutes:
    def test_pay_then_admin_moves_rental(self, client, make_user, make_racket, auth_headers):
        user = make_user()
        admin = make_user(role="admin")
        racket = make_racket()
        created = client.post(
            "/api/v1/rentals",
            json={"racket_id": racket.id, "days": 7},
            headers=auth_headers(user),
        ).json()["data"]["rental"]

        paid = client.post(
            f"/api/v1/rentals/{created['id']}/pay",
            json={"payment": {"bank": "woori", "depositor": "홍길동"}},
            headers=auth_headers(user),
        )
        forbidden = client.post(
            f"/api/v1/rentals/{created['id']}/out", headers=auth_headers(user)
        )
        out = client.post(f"/api/v1/rentals/{created['id']}/out", headers=auth_headers(admin))
        invalid = client.post(
            f"/api/v1/rentals/{created['id']}/cancel", headers=auth_headers(admin)
        )

        assert paid.status_code == 200
        assert paid.json()["status"] == "paid"
        assert forbidden.status_code == 403
        assert out.json()["status"] == "out"
        assert invalid.status_code == 409
        assert invalid.json()["error"]["code"] == "INVALID_STATE"
