"""Stubbed APS upstream served through httpx.MockTransport."""

from typing import Any

import httpx


BASE_URL = "https://aps.test"

TOKEN_PATH = "/authentication/v2/token"
DETAILS_PATH = "/oss/v2/buckets/my-bucket/details"
BUCKETS_PATH = "/oss/v2/buckets"
OBJECTS_PREFIX = "/oss/v2/buckets/my-bucket/objects/"
JOB_PATH = "/modelderivative/v2/designdata/job"

TOKEN_BUNDLE = {
    "access_token": "tok-123",
    "token_type": "Bearer",
    "expires_in": 3599,
}


class StubUpstream:
    """Fake APS API served through httpx.MockTransport.

    Routes are matched on method and raw (still percent-encoded) path. A route
    registered with `prefix=True` matches any path starting with it. When a
    route has several queued responses they are served in order and the last
    one repeats.
    """

    def __init__(self):
        self.routes: list[dict[str, Any]] = []
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        status_code: int = 200,
        json: Any = None,
        text: str | None = None,
        prefix: bool = False,
    ) -> None:
        for route in self.routes:
            if route["method"] == method and route["path"] == path:
                route["responses"].append((status_code, json, text))
                return
        self.routes.append({
            "method": method,
            "path": path,
            "prefix": prefix,
            "responses": [(status_code, json, text)],
        })

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.raw_path.decode("ascii").split("?")[0]
        for route in self.routes:
            if route["method"] != request.method:
                continue
            matched = path.startswith(route["path"]) if route["prefix"] else path == route["path"]
            if matched:
                responses = route["responses"]
                status_code, json, text = responses.pop(0) if len(responses) > 1 else responses[0]
                if text is not None:
                    return httpx.Response(status_code, text=text)
                return httpx.Response(status_code, json=json)
        raise AssertionError(f"No stub for {request.method} {path}")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> list[tuple[str, str]]:
        return [
            (r.method, r.url.raw_path.decode("ascii").split("?")[0])
            for r in self.requests
        ]

    def stub_happy_chain(self, object_id: str = "abc") -> None:
        """Register responses for a full upload-translate run."""
        self.add("POST", TOKEN_PATH, json=TOKEN_BUNDLE)
        self.add("GET", DETAILS_PATH, status_code=404, json={"reason": "Bucket not found"})
        self.add("POST", BUCKETS_PATH, json={"bucketKey": "my-bucket"})
        self.add(
            "PUT",
            OBJECTS_PREFIX,
            json={
                "bucketKey": "my-bucket",
                "objectKey": "obj",
                "objectId": object_id,
                "size": 4,
            },
            prefix=True,
        )
        self.add("POST", JOB_PATH, json={"result": "created"})
