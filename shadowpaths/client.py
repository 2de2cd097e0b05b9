"""HTTP client for the Shadow Paths API, for front-ends and remote seeding."""
import logging
import os

import requests

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code, message, payload=None):
        super().__init__(f"API Error {status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.payload = payload or {}


class ShadowPathsClient:
    def __init__(self, url=None, key=None, user_id=None, session=None, timeout=10):
        self.url = (url or os.getenv("SHADOWPATHS_API_URL", "http://localhost:5000")).rstrip("/")
        self.key = key if key is not None else os.getenv("SHADOWPATHS_API_KEY", "")
        self.user_id = user_id
        self.session = session or requests.Session()
        self.timeout = timeout

    def as_user(self, user_id):
        """Same connection, acting for another signed-in user."""
        return ShadowPathsClient(self.url, self.key, user_id, self.session, self.timeout)

    def _get_head(self):
        headers = {"Content-Type": "application/json"}
        if self.key:
            headers["X-API-KEY"] = self.key
        if self.user_id is not None:
            headers["X-User-Id"] = str(self.user_id)
        return headers

    def _handle_response(self, response):
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            if not isinstance(payload, dict):
                payload = {}
            raise ApiError(response.status_code, payload.get("error", f"HTTP {response.status_code}"), payload)
        return response.json()

    def _request(self, method, path, what, params=None, json=None):
        try:
            response = self.session.request(
                method,
                f"{self.url}{path}",
                params=params,
                json=json,
                headers=self._get_head(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Error %s: %s", what, exc)
            return None
        return self._handle_response(response)

    # read endpoints

    def get_stories(self, status=None, origin=None, category=None):
        params = {}
        if status:
            params["status"] = status
        if origin:
            params["origin"] = origin
        if category:
            params["category"] = category
        data = self._request("GET", "/stories", "fetching stories", params=params)
        return data if data else []

    def get_story(self, story_id):
        return self._request("GET", f"/stories/{story_id}", f"fetching story {story_id}")

    def get_story_map(self, story_id):
        return self._request("GET", f"/stories/{story_id}/map", f"fetching map of story {story_id}")

    def get_user(self, user_id):
        return self._request("GET", f"/users/{user_id}", f"fetching user {user_id}")

    # writing endpoints

    def create_user(self, username, email):
        return self._request(
            "POST", "/users", "creating user", json={"username": username, "email": email}
        )

    def create_story(self, title, description="", categories=None):
        data = {"title": title, "description": description, "categories": categories or []}
        return self._request("POST", "/stories", "creating story", json=data)

    def autosave_story(self, story_id, story):
        return self._request("PUT", f"/stories/{story_id}/autosave", f"autosaving story {story_id}", json=story)

    def save_story(self, story_id, story):
        return self._request("PUT", f"/stories/{story_id}", f"saving story {story_id}", json=story)

    def delete_story(self, story_id):
        result = self._request("DELETE", f"/stories/{story_id}", f"deleting story {story_id}")
        return bool(result and result.get("deleted"))

    def import_story(self, story, status=None):
        payload = dict(story)
        if status:
            payload["status"] = status
        return self._request("POST", "/stories/import", "importing story", json=payload)

    def submit_story(self, story_id):
        return self._request("POST", f"/stories/{story_id}/submit", f"submitting story {story_id}")

    # play endpoints

    def get_landing(self, story_id):
        return self._request("GET", f"/play/{story_id}", f"opening story {story_id}")

    def visit_node(self, story_id, node_id):
        return self._request("GET", f"/play/{story_id}/nodes/{node_id}", f"visiting {node_id}")

    def visit_ending(self, story_id, ending_id):
        return self._request("GET", f"/play/{story_id}/endings/{ending_id}", f"visiting {ending_id}")

    def unlock_choice(self, story_id, node_id, choice_id):
        return self._request(
            "POST",
            f"/play/{story_id}/nodes/{node_id}/choices/{choice_id}/unlock",
            f"unlocking choice {choice_id}",
        )

    def get_notifications(self):
        data = self._request("GET", "/me/notifications", "fetching notifications")
        return data if data else []
