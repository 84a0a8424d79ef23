import json

import requests
from requests.structures import CaseInsensitiveDict


def make_response(status_code=200, body=b"", url="https://api.github.com/", method="GET", headers=None):
    if not isinstance(body, bytes):
        body = json.dumps(body).encode()
    response = requests.Response()
    response.status_code = status_code
    response._content = body
    response._content_consumed = True
    response.url = url
    response.reason = "Created" if status_code == 201 else ""
    response.headers = CaseInsensitiveDict(headers or {})
    response.request = requests.Request(method, url, headers={"Authorization": "Bearer secret"}).prepare()
    return response


class FakeSession:
    """Stands in for requests.Session, answering from queued routes."""

    def __init__(self):
        self.headers = {}
        self.calls = []
        self.routes = {}

    def route(self, method, url, *responses):
        self.routes.setdefault((method, url), []).extend(responses)

    def _answer(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        queue = self.routes.get((method, url))
        if not queue:
            raise requests.ConnectionError(f"no route for {method} {url}")
        return queue.pop(0)

    def get(self, url, **kwargs):
        return self._answer("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._answer("POST", url, kwargs)
