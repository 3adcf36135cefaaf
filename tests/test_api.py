from decimal import Decimal


TRANSACTIONS = "/api/v1/transactions"
PRODUCTIONS = "/api/v1/productions"
BALANCES = "/api/v1/balances"


def _cash_in(client, ids, amount="125.50", **overrides):
    payload = {
        "type": "cash_in",
        "user_id": ids["user"],
        "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["usd"], "amount": amount}],
    }
    payload.update(overrides)
    return client.post(TRANSACTIONS, json=payload)


def test_root(client):
    assert client.get("/").json() == {"message": "Welcome to the Ledger Core APIs!"}


class TestTransactionRoutes:
    def test_create_confirm_and_read_balance(self, client, ids):
        created = _cash_in(client, ids)
        assert created.status_code == 201
        body = created.json()
        assert body["status"] == "draft"
        assert body["number"].startswith("CI-")

        confirmed = client.post(f"{TRANSACTIONS}/{body['id']}/confirm")
        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "confirmed"

        balances = client.get(f"{BALANCES}/cash").json()
        assert [Decimal(row["balance"]) for row in balances] == [Decimal("125.50")]

    def test_confirm_twice_is_a_conflict(self, client, ids):
        transaction_id = _cash_in(client, ids).json()["id"]
        client.post(f"{TRANSACTIONS}/{transaction_id}/confirm")

        response = client.post(f"{TRANSACTIONS}/{transaction_id}/confirm")

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "AlreadyConfirmed"
        assert Decimal(client.get(f"{BALANCES}/cash").json()[0]["balance"]) == Decimal("125.50")

    def test_currency_mismatch_is_unprocessable(self, client, ids):
        response = client.post(TRANSACTIONS, json={
            "type": "cash_in",
            "user_id": ids["user"],
            "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["eur"], "amount": "10"}],
        })

        assert response.status_code == 422
        assert response.json()["error"] == "CurrencyMismatch"

    def test_missing_document(self, client):
        response = client.get(f"{TRANSACTIONS}/9999")

        assert response.status_code == 404
        assert response.json()["status_code"] == 404

    def test_zero_quantity_item_is_rejected_by_schema(self, client, ids):
        response = client.post(TRANSACTIONS, json={
            "type": "sale",
            "user_id": ids["user"],
            "items": [{"product_id": ids["cake"], "warehouse_id": ids["wh_a"], "quantity": "0"}],
        })

        assert response.status_code == 422

    def test_edit_list_and_delete(self, client, ids):
        transaction_id = _cash_in(client, ids).json()["id"]

        updated = client.put(f"{TRANSACTIONS}/{transaction_id}", json={
            "description": "float top-up",
            "cash_entries": [{"cash_register_id": ids["till"], "currency_id": ids["usd"], "amount": "80"}],
        })
        assert updated.status_code == 200
        assert updated.json()["description"] == "float top-up"
        assert [Decimal(e["amount"]) for e in updated.json()["cash_entries"]] == [Decimal("80.00")]

        listed = client.get(TRANSACTIONS, params={"type": "cash_in"}).json()
        assert listed["total"] == 1

        deleted = client.delete(f"{TRANSACTIONS}/{transaction_id}")
        assert deleted.status_code == 200
        assert client.get(f"{TRANSACTIONS}/{transaction_id}").status_code == 404

    def test_cancel_reverses_cash(self, client, ids):
        transaction_id = _cash_in(client, ids).json()["id"]
        client.post(f"{TRANSACTIONS}/{transaction_id}/confirm")

        response = client.post(f"{TRANSACTIONS}/{transaction_id}/cancel")

        assert response.json()["status"] == "cancelled"
        assert Decimal(client.get(f"{BALANCES}/cash").json()[0]["balance"]) == Decimal("0")
        assert client.get(f"{BALANCES}/reconciliation").json() == {"balanced": True, "drifts": []}


class TestProductionRoutes:
    def _stock(self, client, ids, product, quantity, price):
        created = client.post(TRANSACTIONS, json={
            "type": "purchase",
            "user_id": ids["user"],
            "items": [{"product_id": ids[product], "warehouse_id": ids["wh_a"], "quantity": quantity, "price": price}],
        })
        client.post(f"{TRANSACTIONS}/{created.json()['id']}/confirm")

    def _create(self, client, ids, batch_count="2"):
        return client.post(PRODUCTIONS, json={
            "recipe_id": ids["recipe"],
            "user_id": ids["user"],
            "output_warehouse_id": ids["wh_b"],
            "ingredient_warehouse_id": ids["wh_a"],
            "batch_count": batch_count,
        })

    def test_calculate(self, client, ids):
        response = client.get(f"{PRODUCTIONS}/calculate", params={"recipe_id": ids["recipe"], "batch_count": "3"})

        assert response.status_code == 200
        body = response.json()
        assert [Decimal(line["planned_quantity"]) for line in body["ingredients"]] == [Decimal("6"), Decimal("3")]
        assert body["outputs"][0]["product_name"] == "Cake"

    def test_calculate_unknown_recipe(self, client):
        assert client.get(f"{PRODUCTIONS}/calculate", params={"recipe_id": 404}).status_code == 404

    def test_feasibility_then_confirm(self, client, ids):
        production_id = self._create(client, ids).json()["id"]
        self._stock(client, ids, "flour", "4", "5.00")

        report = client.get(f"{PRODUCTIONS}/{production_id}/feasibility").json()
        assert report["feasible"] is False
        assert [line["sufficient"] for line in report["ingredients"]] == [True, False]

        short = client.post(f"{PRODUCTIONS}/{production_id}/confirm")
        assert short.status_code == 409
        assert short.json()["product_id"] == ids["sugar"]

        self._stock(client, ids, "sugar", "2", "1.00")
        confirmed = client.post(f"{PRODUCTIONS}/{production_id}/confirm")
        assert confirmed.status_code == 200
        # 4 flour @ 5 + 2 sugar @ 1 = 22 over 2 cakes
        assert Decimal(confirmed.json()["outputs"][0]["cost"]) == Decimal("11")

        stock = client.get(f"{BALANCES}/stock", params={"warehouse_id": ids["wh_b"]}).json()
        assert [(row["product_id"], Decimal(row["avg_cost"])) for row in stock] == [(ids["cake"], Decimal("11"))]

    def test_draft_edit_and_delete(self, client, ids):
        production_id = self._create(client, ids).json()["id"]

        updated = client.put(f"{PRODUCTIONS}/{production_id}", json={"notes": "half batch"})
        assert updated.json()["notes"] == "half batch"
        assert len(updated.json()["ingredients"]) == 2

        assert client.put(f"{PRODUCTIONS}/{production_id}", json={"ingredients": []}).status_code == 422

        assert client.delete(f"{PRODUCTIONS}/{production_id}").status_code == 200
        assert client.get(PRODUCTIONS).json()["total"] == 0

    def test_cancel_draft_is_a_conflict(self, client, ids):
        production_id = self._create(client, ids).json()["id"]

        response = client.post(f"{PRODUCTIONS}/{production_id}/cancel")

        assert response.status_code == 409
        assert response.json()["error"] == "InvalidState"


class TestBalanceRoutes:
    def test_ledger_listings(self, client, ids):
        created = client.post(TRANSACTIONS, json={
            "type": "sale",
            "user_id": ids["user"],
            "counterparty_id": ids["customer"],
            "currency_id": ids["usd"],
            "total_amount": "300",
            "paid_amount": "100",
        })
        client.post(f"{TRANSACTIONS}/{created.json()['id']}/confirm")

        counterparties = client.get(f"{BALANCES}/counterparties", params={"non_zero": True}).json()
        assert [Decimal(row["balance"]) for row in counterparties] == [Decimal("200")]
        assert client.get(f"{BALANCES}/dividends").json() == []
        assert client.get(f"{BALANCES}/salaries").json() == []
        assert client.get(f"{BALANCES}/stock/summary").json() == []

    def test_cash_movements(self, client, ids):
        created = _cash_in(client, ids, amount="80.00")
        client.post(f"{TRANSACTIONS}/{created.json()['id']}/confirm")
        _cash_in(client, ids, amount="999.00")

        body = client.get(f"{BALANCES}/cash/movements", params={"cash_register_id": ids["till"]}).json()

        assert body["total"] == 1
        movement = body["movements"][0]
        assert Decimal(movement["amount"]) == Decimal("80.00")
        assert movement["transaction"]["number"] == created.json()["number"]
        assert movement["transaction"]["type"] == "cash_in"

    def test_stock_movements_empty(self, client, ids):
        assert client.get(f"{BALANCES}/stock/movements", params={"warehouse_id": ids["wh_a"]}).json() == {
            "total": 0,
            "movements": [],
        }

    def test_dividend_distribution(self, client, ids):
        response = client.get(
            f"{BALANCES}/dividends/distribution", params={"amount": "250", "currency_id": ids["usd"]}
        )

        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["total_amount"]) == Decimal("250")
        assert [(line["partner_id"], Decimal(line["amount"])) for line in body["distribution"]] == [
            (ids["partner"], Decimal("250.00"))
        ]

    def test_dividend_distribution_validation(self, client, ids):
        assert client.get(
            f"{BALANCES}/dividends/distribution", params={"amount": "0", "currency_id": ids["usd"]}
        ).status_code == 422
        assert client.get(
            f"{BALANCES}/dividends/distribution", params={"amount": "10", "currency_id": 9999}
        ).status_code == 404
