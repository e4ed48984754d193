"""HTTP surface: envelope, status codes, camelCase payloads and role gates."""

from tests.conftest import ADDRESSES


def _create_project(client, headers, name="Harbour View Tower"):
    res = client.post("/api/projects/create", headers=headers, json={
        "projectName": name,
        "projectType": "Residential",
        "location": {"city": "Mumbai", "country": "India"},
        "zones": ["Podium", "Tower"],
    })
    assert res.status_code == 201, res.text
    return res.json()["data"]


def _add(client, headers, project_id, role, key):
    res = client.post(
        f"/api/projects/{project_id}/add-{role}",
        headers=headers,
        json={"walletAddress": ADDRESSES[key]},
    )
    assert res.status_code == 200, res.text
    return res.json()["data"]


class TestHealth:

    def test_health(self, client):
        res = client.get("/health")
        assert res.status_code == 200
        assert res.json()["success"] is True

    def test_index_and_readiness(self, client):
        assert client.get("/api").json()["data"]["endpoints"]["dpp"] == "/api/dpp"
        assert client.get("/api/readiness").json() == {"status": "ready", "database": "online"}


class TestAuth:

    def test_register_then_duplicate(self, client):
        body = {"walletAddress": "0x" + "5A" * 20, "role": "installer", "name": "Kiran Patel"}

        res = client.post("/api/auth/register", json=body)
        assert res.status_code == 201
        data = res.json()["data"]
        assert data["user"]["walletAddress"] == "0x" + "5a" * 20
        assert data["user"]["role"] == "installer"
        assert data["token"]

        res = client.post("/api/auth/register", json={**body, "role": "owner"})
        assert res.status_code == 409
        assert res.json()["success"] is False

    def test_invalid_address_is_a_validation_error(self, client):
        res = client.post("/api/auth/register", json={
            "walletAddress": "0x123", "role": "owner", "name": "Nobody"
        })
        assert res.status_code == 400
        body = res.json()
        assert body["message"] == "Validation failed"
        assert body["errors"][0]["field"] == "walletAddress"

    def test_unknown_role_is_rejected(self, client):
        res = client.post("/api/auth/register", json={
            "walletAddress": "0x" + "5b" * 20, "role": "auditor", "name": "Nobody"
        })
        assert res.status_code == 400

    def test_login_and_check_wallet(self, client, users):
        res = client.post("/api/auth/check-wallet", json={"walletAddress": ADDRESSES["supplier"]})
        assert res.json()["data"]["exists"] is True

        res = client.post("/api/auth/check-wallet", json={"walletAddress": "0x" + "77" * 20})
        assert res.json()["data"] == {"exists": False, "user": None}

        res = client.post("/api/auth/login", json={"walletAddress": ADDRESSES["supplier"]})
        assert res.status_code == 200
        token = res.json()["data"]["token"]

        res = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 200
        assert res.json()["data"]["role"] == "supplier"

    def test_login_unregistered(self, client):
        res = client.post("/api/auth/login", json={"walletAddress": "0x" + "77" * 20})
        assert res.status_code == 404

    def test_missing_and_bad_tokens(self, client):
        res = client.get("/api/auth/profile")
        assert res.status_code == 401
        assert "No token provided" in res.json()["message"]

        res = client.get("/api/auth/profile", headers={"Authorization": "Bearer nonsense"})
        assert res.status_code == 401

    def test_update_profile(self, client, users, auth_header):
        res = client.put(
            "/api/auth/profile", headers=auth_header(users["owner"]), json={"company": "Kumar Estates"}
        )
        assert res.status_code == 200
        assert res.json()["data"]["company"] == "Kumar Estates"

    def test_lookup_user(self, client, users, auth_header):
        headers = auth_header(users["regulator"])
        res = client.get(f"/api/auth/user/{ADDRESSES['installer'].upper().replace('0X', '0x')}", headers=headers)
        assert res.status_code == 200
        assert res.json()["data"]["role"] == "installer"

        assert client.get("/api/auth/user/0x" + "77" * 20, headers=headers).status_code == 404
        assert client.get("/api/auth/user/not-a-wallet", headers=headers).status_code == 400


class TestProjects:

    def test_contractor_cannot_create(self, client, users, auth_header):
        res = client.post("/api/projects/create", headers=auth_header(users["contractor"]), json={
            "projectName": "Not Mine", "projectType": "Other"
        })
        assert res.status_code == 403

    def test_create_list_and_get(self, client, users, auth_header, ledger):
        owner = auth_header(users["owner"])
        created = _create_project(client, owner)

        assert created["projectId"].startswith("PRJ-")
        assert created["ownerWalletAddress"] == ADDRESSES["owner"]
        assert created["externalMetadataRef"] == "bafyjson1"
        assert created["ledgerTxRef"].startswith("0x")
        assert created["location"]["city"] == "Mumbai"

        listed = client.get("/api/projects", headers=owner).json()["data"]
        assert [p["projectId"] for p in listed["projects"]] == [created["projectId"]]
        assert listed["pagination"]["totalItems"] == 1

        detail = client.get(f"/api/projects/{created['projectId']}", headers=owner).json()["data"]
        assert detail["dppCount"] == 0

    def test_paging_limits(self, client, users, auth_header):
        owner = auth_header(users["owner"])
        assert client.get("/api/projects?limit=0", headers=owner).status_code == 400
        assert client.get("/api/projects?limit=101", headers=owner).status_code == 400
        assert client.get("/api/projects?page=0", headers=owner).status_code == 400

    def test_add_member_errors(self, client, users, auth_header):
        owner = auth_header(users["owner"])
        project_id = _create_project(client, owner)["projectId"]

        _add(client, owner, project_id, "contractor", "contractor")
        res = client.post(
            f"/api/projects/{project_id}/add-contractor",
            headers=owner,
            json={"walletAddress": ADDRESSES["contractor"]},
        )
        assert res.status_code == 409

        res = client.post(
            f"/api/projects/{project_id}/add-supplier",
            headers=owner,
            json={"walletAddress": ADDRESSES["installer"]},
        )
        assert res.status_code == 404

        res = client.post(
            f"/api/projects/{project_id}/add-installer",
            headers=auth_header(users["other_owner"]),
            json={"walletAddress": ADDRESSES["installer"]},
        )
        assert res.status_code == 403

    def test_outsider_cannot_read_project(self, client, users, auth_header):
        project_id = _create_project(client, auth_header(users["owner"]))["projectId"]

        res = client.get(f"/api/projects/{project_id}", headers=auth_header(users["stranger_installer"]))
        assert res.status_code == 403
        res = client.get(f"/api/projects/{project_id}", headers=auth_header(users["regulator"]))
        assert res.status_code == 200

    def test_update_merges_location(self, client, users, auth_header):
        owner = auth_header(users["owner"])
        project_id = _create_project(client, owner)["projectId"]

        res = client.put(f"/api/projects/{project_id}", headers=owner, json={
            "status": "on-hold", "location": {"pincode": "400069"}
        })
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["status"] == "on-hold"
        assert data["location"]["city"] == "Mumbai"
        assert data["location"]["pincode"] == "400069"

    def test_missing_project(self, client, users, auth_header):
        res = client.get("/api/projects/PRJ-0-NONE", headers=auth_header(users["owner"]))
        assert res.status_code == 404


class TestPassportFlow:

    def test_full_lifecycle(self, client, users, auth_header):
        owner = auth_header(users["owner"])
        contractor = auth_header(users["contractor"])
        installer = auth_header(users["installer"])
        supplier = auth_header(users["supplier"])

        project_id = _create_project(client, owner)["projectId"]
        _add(client, owner, project_id, "contractor", "contractor")
        _add(client, owner, project_id, "installer", "installer")
        _add(client, owner, project_id, "supplier", "supplier")

        res = client.post("/api/dpp/create", headers=contractor, json={
            "projectId": project_id,
            "productName": "Fire Rated Glass Panel",
            "category": "Glass",
            "quantity": 40,
            "unit": "piece",
            "metadata": {"manufacturer": "Saint Glass Works"},
        })
        assert res.status_code == 201, res.text
        created = res.json()["data"]
        dpp = created["dpp"]
        dpp_id = dpp["dppId"]
        assert created["verificationUrl"] == f"http://frontend.test/verify/{dpp_id}"
        assert dpp["documentCompleteness"] == 0
        assert dpp["metadata"]["manufacturer"] == "Saint Glass Works"

        res = client.put(f"/api/dpp/{dpp_id}/install", headers=installer, json={
            "installationData": {
                "installationLocation": "Concourse facade",
                "installationDate": "2024-05-02T10:00:00",
                "installerName": "Amit Sharma",
            }
        })
        assert res.status_code == 200, res.text
        installed = res.json()["data"]
        assert installed["status"] == "installed"
        assert installed["documentCompleteness"] == 20
        assert installed["complianceStatus"] is False

        res = client.put(f"/api/dpp/{dpp_id}/enrich", headers=supplier, json={
            "enrichmentData": {
                "epdDocumentCid": "bafyepd",
                "fireRatingCertCid": "bafyfire",
                "technicalSpecsCid": "bafyspecs",
                "warrantyDocCid": "bafywarranty",
                "maintenanceManualCid": "bafymanual",
            }
        })
        assert res.status_code == 200, res.text
        enriched = res.json()["data"]
        assert enriched["status"] == "enriched"
        assert enriched["documentCompleteness"] == 53
        assert enriched["complianceStatus"] is True

        # Public routes need no token.
        res = client.get(f"/api/dpp/{dpp_id}/verify")
        assert res.status_code == 200
        verified = res.json()["data"]
        assert verified["verified"] is True
        assert verified["project"]["projectName"] == "Harbour View Tower"
        assert "procurementData" not in verified
        assert "enrichmentData" not in verified

        proof = client.get(f"/api/dpp/{dpp_id}/blockchain-proof").json()["data"]
        assert proof["transactions"]["enrichment"].startswith("0x")
        assert proof["storageRefs"]["epdDocument"] == "bafyepd"

        detail = client.get(f"/api/dpp/{dpp_id}", headers=owner).json()["data"]
        assert len(detail["verificationHistory"]) == 1
        assert detail["project"]["projectId"] == project_id

        listed = client.get(f"/api/dpp/project/{project_id}", headers=installer).json()["data"]
        assert [d["dppId"] for d in listed["dpps"]] == [dpp_id]

    def test_phase_gates(self, client, users, auth_header):
        owner = auth_header(users["owner"])
        project_id = _create_project(client, owner)["projectId"]
        _add(client, owner, project_id, "contractor", "contractor")

        body = {
            "projectId": project_id, "productName": "Clay Bricks",
            "category": "Bricks", "quantity": 1000, "unit": "piece",
        }
        # Not on the roster.
        res = client.post("/api/dpp/create", headers=auth_header(users["stranger_contractor"]), json=body)
        assert res.status_code == 403
        # Wrong role for the route.
        res = client.post("/api/dpp/create", headers=auth_header(users["supplier"]), json=body)
        assert res.status_code == 403
        # Regulators never write.
        res = client.post("/api/dpp/create", headers=auth_header(users["regulator"]), json=body)
        assert res.status_code == 403

        dpp_id = client.post("/api/dpp/create", headers=auth_header(users["contractor"]), json=body) \
            .json()["data"]["dpp"]["dppId"]

        res = client.put(
            f"/api/dpp/{dpp_id}/install",
            headers=auth_header(users["installer"]),
            json={"installationData": {"installerName": "A"}},
        )
        assert res.status_code == 403

        res = client.put(
            "/api/dpp/DPP-NONE/install",
            headers=auth_header(users["installer"]),
            json={"installationData": {}},
        )
        assert res.status_code == 404

    def test_create_validation(self, client, users, auth_header):
        res = client.post("/api/dpp/create", headers=auth_header(users["contractor"]), json={
            "projectId": "PRJ-1", "productName": "X", "category": "Timber", "quantity": -1, "unit": "bag",
        })
        assert res.status_code == 400
        fields = {e["field"] for e in res.json()["errors"]}
        assert {"productName", "category", "quantity"} <= fields

    def test_unknown_passport_is_not_found(self, client):
        assert client.get("/api/dpp/DPP-NONE/verify").status_code == 404
        assert client.get("/api/dpp/DPP-NONE/blockchain-proof").status_code == 404

    def test_search_route(self, client, users, auth_header):
        res = client.get("/api/dpp/search?query=glass", headers=auth_header(users["regulator"]))
        assert res.status_code == 200
        assert res.json()["data"]["dpps"] == []


class TestDashboards:

    def test_role_gates(self, client, users, auth_header):
        assert client.get("/api/dashboard/regulator", headers=auth_header(users["owner"])).status_code == 403
        assert client.get("/api/dashboard/contractor", headers=auth_header(users["installer"])).status_code == 403
        assert client.get("/api/dashboard/regulator", headers=auth_header(users["regulator"])).status_code == 200

    def test_owner_dashboard(self, client, users, auth_header):
        owner = auth_header(users["owner"])
        project_id = _create_project(client, owner)["projectId"]

        res = client.get(f"/api/dashboard/owner/{project_id}", headers=owner)
        assert res.status_code == 200
        assert res.json()["data"]["statistics"]["totalDpps"] == 0

        res = client.get(f"/api/dashboard/owner/{project_id}", headers=auth_header(users["other_owner"]))
        assert res.status_code == 403

    def test_supplier_dashboard(self, client, users, auth_header):
        res = client.get("/api/dashboard/supplier", headers=auth_header(users["supplier"]))
        assert res.status_code == 200
        assert res.json()["data"]["statistics"]["pendingEnrichments"] == 0


class TestUploads:

    def test_upload_requires_token(self, client):
        res = client.post("/api/upload/ipfs", files={"file": ("epd.pdf", b"%PDF-1.4", "application/pdf")})
        assert res.status_code == 401

    def test_upload_file(self, client, users, auth_header, storage):
        res = client.post(
            "/api/upload/ipfs",
            headers=auth_header(users["supplier"]),
            files={"file": ("epd.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert res.status_code == 200, res.text
        data = res.json()["data"]
        assert data["ipfsHash"] == "bafyfile1"
        assert data["ipfsUrl"] == "https://gateway.test/ipfs/bafyfile1"
        assert data["fileSize"] == 8
        assert storage.files[0][0] == "epd.pdf"

    def test_disallowed_type(self, client, users, auth_header):
        res = client.post(
            "/api/upload/ipfs",
            headers=auth_header(users["supplier"]),
            files={"file": ("run.sh", b"echo", "text/x-shellscript")},
        )
        assert res.status_code == 400

    def test_upload_many(self, client, users, auth_header):
        res = client.post(
            "/api/upload/ipfs-multiple",
            headers=auth_header(users["installer"]),
            files=[
                ("files", ("a.png", b"\x89PNG", "image/png")),
                ("files", ("b.jpg", b"\xff\xd8", "image/jpeg")),
            ],
        )
        assert res.status_code == 200, res.text
        assert res.json()["data"]["totalFiles"] == 2

    def test_storage_outage_is_bad_gateway(self, client, users, auth_header, storage):
        storage.fail = True
        res = client.post(
            "/api/upload/ipfs",
            headers=auth_header(users["supplier"]),
            files={"file": ("epd.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert res.status_code == 502

    def test_gateway_url_is_public(self, client):
        res = client.get("/api/upload/ipfs-url/bafydoc")
        assert res.json()["data"]["ipfsUrl"] == "https://gateway.test/ipfs/bafydoc"
