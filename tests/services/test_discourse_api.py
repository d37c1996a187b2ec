import pytest

from discourseupdater.errors import UpdaterError
from discourseupdater.models import RemoteInstall
from discourseupdater.services.discourse_api import DiscourseClient, parse_generator_version


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self.payload = payload
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400

    def raise_for_status(self):
        if not self.ok:
            raise FakeRequestsModule.RequestException(f"HTTP {self.status_code}")

    def json(self):
        if self.payload is None:
            raise ValueError("no json")
        return self.payload


class FakeRequestsModule:
    class RequestException(Exception):
        pass

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return self._respond(url)

    def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        return self._respond(url)

    def _respond(self, url):
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response


def _install(**kwargs):
    values = {
        "name": "forum",
        "host": "forum.example.com",
        "baseurl": "https://forum.example.com/",
        "api_key": "key",
        "api_username": "system",
    }
    values.update(kwargs)
    return RemoteInstall(**values)


def test_client_requires_baseurl():
    with pytest.raises(UpdaterError, match="baseurl"):
        DiscourseClient(_install(baseurl=None), requests_module=FakeRequestsModule({}))


def test_fetch_version_reads_about_json_with_api_headers():
    fake_requests = FakeRequestsModule(
        {"https://forum.example.com/about.json": FakeResponse(payload={"about": {"version": "3.2.1"}})}
    )

    version = DiscourseClient(_install(), requests_module=fake_requests).fetch_version()

    assert version == "3.2.1"
    _, url, kwargs = fake_requests.calls[0]
    assert url == "https://forum.example.com/about.json"
    assert kwargs["headers"] == {"Api-Key": "key", "Api-Username": "system"}


def test_fetch_version_falls_back_to_generator_meta_tag():
    html = '<html><head><meta name="generator" content="Discourse 3.3.0.beta1 - https://github.com/discourse/discourse version abc"></head></html>'
    fake_requests = FakeRequestsModule(
        {
            "https://forum.example.com/about.json": FakeResponse(status_code=404),
            "https://forum.example.com/": FakeResponse(text=html),
        }
    )

    version = DiscourseClient(_install(), requests_module=fake_requests).fetch_version()

    assert version == "3.3.0.beta1"


def test_fetch_version_raises_when_site_unreachable():
    error = FakeRequestsModule.RequestException("connection refused")
    fake_requests = FakeRequestsModule(
        {
            "https://forum.example.com/about.json": error,
            "https://forum.example.com/": error,
        }
    )

    with pytest.raises(UpdaterError, match="connection refused"):
        DiscourseClient(_install(), requests_module=fake_requests).fetch_version()


def test_create_post_returns_post_id():
    fake_requests = FakeRequestsModule(
        {"https://forum.example.com/posts.json": FakeResponse(payload={"id": 5150})}
    )

    post_id = DiscourseClient(_install(), requests_module=fake_requests).create_post(42, "- [x] done")

    assert post_id == 5150
    method, _, kwargs = fake_requests.calls[0]
    assert method == "POST"
    assert kwargs["data"] == {"topic_id": "42", "raw": "- [x] done"}


def test_create_post_raises_on_http_error():
    fake_requests = FakeRequestsModule(
        {"https://forum.example.com/posts.json": FakeResponse(status_code=403, text="forbidden")}
    )

    with pytest.raises(UpdaterError, match="403"):
        DiscourseClient(_install(), requests_module=fake_requests).create_post(42, "text")


def test_parse_generator_version_ignores_other_generators():
    assert parse_generator_version('<meta name="generator" content="WordPress 6.0">') is None
    assert parse_generator_version("") is None


@pytest.mark.parametrize(
    "payload",
    [{"about": "maintenance"}, ["3.2.1"], {"about": {"version": {"major": 3}}}],
)
def test_fetch_version_falls_back_when_about_json_is_malformed(payload):
    html = '<meta name="generator" content="Discourse 3.2.1 - https://github.com/discourse/discourse">'
    fake_requests = FakeRequestsModule(
        {
            "https://forum.example.com/about.json": FakeResponse(payload=payload),
            "https://forum.example.com/": FakeResponse(text=html),
        }
    )

    version = DiscourseClient(_install(), requests_module=fake_requests).fetch_version()

    assert version == "3.2.1"


def test_fetch_version_returns_none_when_no_source_names_a_version():
    fake_requests = FakeRequestsModule(
        {
            "https://forum.example.com/about.json": FakeResponse(payload={"about": "maintenance"}),
            "https://forum.example.com/": FakeResponse(text="<html>maintenance</html>"),
        }
    )

    assert DiscourseClient(_install(), requests_module=fake_requests).fetch_version() is None
