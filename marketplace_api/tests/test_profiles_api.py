import unittest
import uuid

from support import ApiTestCase


class ProfilesApiTests(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.profile, self.headers = await self.signup("driver@example.com")

    async def test_update_own_profile(self):
        resp = await self.client.patch(
            "/api/v1/profiles/me", json={"bio": "Rotary fan", "location": "Portland, OR"}, headers=self.headers
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["bio"], "Rotary fan")

        public = (await self.client.get(f"/api/v1/profiles/{self.profile['id']}")).json()
        self.assertEqual(public["location"], "Portland, OR")
        self.assertNotIn("email", public)

    async def test_unknown_public_profile(self):
        resp = await self.client.get(f"/api/v1/profiles/{uuid.uuid4()}")
        self.assertErrorEnvelope(resp, 404, "Profile not found")

    async def test_avatar_upload(self):
        resp = await self.client.post(
            "/api/v1/profiles/me/avatar",
            files={"file": ("me.jpg", b"\xff\xd8\xff\xe0fake", "image/jpeg")},
            headers=self.headers,
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        url = resp.json()["profile_image_url"]
        me = (await self.client.get("/api/v1/profiles/me", headers=self.headers)).json()
        self.assertEqual(me["profile_image_url"], url)

    async def test_preferences_defaults_and_update(self):
        prefs = (await self.client.get("/api/v1/profiles/me/notification-preferences", headers=self.headers)).json()
        self.assertTrue(prefs["email_new_messages"])
        self.assertFalse(prefs["quiet_hours_enabled"])

        resp = await self.client.put(
            "/api/v1/profiles/me/notification-preferences",
            json={"push_replies": True, "quiet_hours_enabled": True, "quiet_hours_start": "22:00", "quiet_hours_end": "07:00"},
            headers=self.headers,
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        updated = resp.json()
        self.assertTrue(updated["push_replies"])
        self.assertEqual((updated["quiet_hours_start"], updated["quiet_hours_end"]), ("22:00", "07:00"))

        resp = await self.client.put(
            "/api/v1/profiles/me/notification-preferences", json={"quiet_hours_enabled": False}, headers=self.headers
        )
        self.assertIsNone(resp.json()["quiet_hours_start"])

    async def test_quiet_hours_validation(self):
        resp = await self.client.put(
            "/api/v1/profiles/me/notification-preferences",
            json={"quiet_hours_enabled": True, "quiet_hours_start": "22:00"},
            headers=self.headers,
        )
        self.assertErrorEnvelope(
            resp, 400, "Quiet hours start and end times are required when quiet hours are enabled"
        )


if __name__ == "__main__":
    unittest.main()
