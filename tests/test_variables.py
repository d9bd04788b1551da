"""Variable API tests.

Covers:
- CRUD and key format validation
- unique keys per org
- usage lookup across prompts and scenario USER turns
- delete refused with IN_USE while referenced, allowed once unreferenced
"""

import pytest


async def _create_variable(client, headers, key="customer_name", value="Alex") -> dict:
    r = await client.post("/api/variables", json={"key": key, "value": value}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_variable_crud(client, alice):
    headers, _ = alice
    variable = await _create_variable(client, headers)
    assert variable["id"].startswith("var_")
    assert variable["key"] == "customer_name"

    r = await client.put(
        f"/api/variables/{variable['id']}",
        json={"value": "Sam", "description": "Default customer"},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["value"] == "Sam"
    assert r.json()["description"] == "Default customer"

    r = await client.get("/api/variables", params={"search": "CUSTOMER"}, headers=headers)
    assert [v["key"] for v in r.json()] == ["customer_name"]

    assert (await client.delete(f"/api/variables/{variable['id']}", headers=headers)).status_code == 200
    assert (await client.get(f"/api/variables/{variable['id']}", headers=headers)).status_code == 404


@pytest.mark.parametrize("key", ["has space", "dash-ed", "{{brace}}", ""])
@pytest.mark.asyncio
async def test_invalid_keys_rejected(client, alice, key):
    headers, _ = alice
    r = await client.post("/api/variables", json={"key": key, "value": "x"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"] == "VALIDATION"


@pytest.mark.asyncio
async def test_duplicate_key_rejected(client, alice):
    headers, _ = alice
    await _create_variable(client, headers)
    other = await _create_variable(client, headers, key="store_name", value="Shop")

    r = await client.post("/api/variables", json={"key": "customer_name", "value": "x"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"] == "DUPLICATE"

    r = await client.put(f"/api/variables/{other['id']}", json={"key": "customer_name"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"] == "DUPLICATE"

    # Re-submitting the same key is not a conflict
    r = await client.put(f"/api/variables/{other['id']}", json={"key": "store_name", "value": "Shop 2"}, headers=headers)
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_delete_blocked_while_in_use(client, alice):
    headers, _ = alice
    variable = await _create_variable(client, headers)
    prompt = (
        await client.post(
            "/api/prompts",
            json={"name": "Greeting", "content": "Say hello to {{customer_name}}."},
            headers=headers,
        )
    ).json()

    r = await client.delete(f"/api/variables/{variable['id']}", headers=headers)
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "IN_USE"
    assert body["details"]["prompts"] == [{"id": prompt["id"], "name": "Greeting"}]
    assert body["details"]["scenarios"] == []
    assert (await client.get(f"/api/variables/{variable['id']}", headers=headers)).status_code == 200

    await client.put(f"/api/prompts/{prompt['id']}", json={"content": "Say hello."}, headers=headers)

    r = await client.delete(f"/api/variables/{variable['id']}", headers=headers)
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_usage_includes_scenario_user_turns(client, alice):
    headers, _ = alice
    variable = await _create_variable(client, headers)
    scenario = (
        await client.post(
            "/api/scenarios",
            json={
                "name": "Late order",
                "turns": [{"turnType": "USER", "userText": "I'm {{customer_name}}"}],
            },
            headers=headers,
        )
    ).json()
    # Near misses do not count
    await client.post("/api/prompts", json={"name": "Other", "content": "{customer_name} {{customer}}"}, headers=headers)

    r = await client.get(f"/api/variables/{variable['id']}/usage", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"prompts": [], "scenarios": [{"id": scenario["id"], "name": "Late order"}]}

    r = await client.delete(f"/api/variables/{variable['id']}", headers=headers)
    assert r.json()["error"] == "IN_USE"


@pytest.mark.asyncio
async def test_usage_ignores_other_orgs(client, alice, auth_headers):
    headers, _ = alice
    variable = await _create_variable(client, headers)
    bob = auth_headers("usr_bob", "bob@x.com", "Bob")
    r = await client.post("/api/prompts", json={"name": "Bob's", "content": "{{customer_name}}"}, headers=bob)
    assert r.status_code == 201

    r = await client.delete(f"/api/variables/{variable['id']}", headers=headers)
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_same_user_isolated_between_own_orgs(client, alice, switch_alice_to_new_org):
    headers, _ = alice
    variable = await _create_variable(client, headers)

    await switch_alice_to_new_org()
    assert (await client.get("/api/variables", headers=headers)).json() == []
    assert (await client.get(f"/api/variables/{variable['id']}", headers=headers)).status_code == 404
    assert (await client.get(f"/api/variables/{variable['id']}/usage", headers=headers)).status_code == 404
    assert (await client.delete(f"/api/variables/{variable['id']}", headers=headers)).status_code == 404

    # The same key is free in the new org
    other = await _create_variable(client, headers)
    assert other["id"] != variable["id"]
