import pytest
from rich.console import Console

from discourseupdater.errors import UpdaterError
from discourseupdater.models import RemoteInstall
from discourseupdater.services.changelog import ChangelogPoster, DiscourseChangelogPublisher

CHECKLIST = "- [x] Ubuntu OS updated\n- [x] Server rebooted"


class DummyLogger:
    def __init__(self):
        self.warnings = []

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, message, *args):
        self.warnings.append(message % args)


class RecordingPublisher:
    def __init__(self, post_id=99):
        self.post_id = post_id
        self.calls = []

    def publish(self, install, topic_id, text):
        self.calls.append((install.name, topic_id, text))
        return self.post_id


def _install(**kwargs):
    values = {
        "name": "forum",
        "host": "forum.example.com",
        "changelog_topic_id": 42,
        "baseurl": "https://forum.example.com",
        "api_key": "key",
        "api_username": "system",
    }
    values.update(kwargs)
    return RemoteInstall(**values)


def test_post_prints_checklist_then_publishes_after_confirmation():
    console = Console(record=True)
    publisher = RecordingPublisher()
    prompts = []

    def confirm(prompt):
        prompts.append(prompt)
        return True

    poster = ChangelogPoster(publisher, logger=DummyLogger(), console=console, confirm=confirm)

    result = poster.post(_install(), CHECKLIST)

    assert result.posted is True
    assert result.post_id == 99
    assert publisher.calls == [("forum", 42, CHECKLIST)]
    assert prompts == ["Post this to changelog?"]
    assert "- [x] Ubuntu OS updated" in console.export_text()


def test_post_skips_with_warning_when_destination_missing():
    logger = DummyLogger()
    publisher = RecordingPublisher()
    poster = ChangelogPoster(
        publisher,
        logger=logger,
        console=Console(record=True),
        confirm=lambda _prompt: pytest.fail("should not prompt"),
    )

    result = poster.post(_install(changelog_topic_id=None), CHECKLIST)

    assert result.posted is False
    assert "changelog_topic_id" in result.skipped_reason
    assert publisher.calls == []
    assert logger.warnings


def test_post_skips_when_credentials_missing():
    publisher = RecordingPublisher()
    poster = ChangelogPoster(publisher, logger=DummyLogger(), console=Console(record=True))

    result = poster.post(_install(api_key=None), CHECKLIST, auto_confirm=True)

    assert result.posted is False
    assert "api credentials" in result.skipped_reason
    assert publisher.calls == []


def test_post_skips_when_operator_declines():
    publisher = RecordingPublisher()
    poster = ChangelogPoster(
        publisher,
        logger=DummyLogger(),
        console=Console(record=True),
        confirm=lambda _prompt: False,
    )

    result = poster.post(_install(), CHECKLIST)

    assert result.posted is False
    assert "declined" in result.skipped_reason
    assert publisher.calls == []


def test_post_auto_confirm_does_not_prompt():
    console = Console(record=True)
    publisher = RecordingPublisher()
    poster = ChangelogPoster(
        publisher,
        logger=DummyLogger(),
        console=console,
        confirm=lambda _prompt: pytest.fail("should not prompt"),
    )

    result = poster.post(_install(), CHECKLIST, auto_confirm=True)

    assert result.posted is True
    assert "y (auto)" in console.export_text()


def test_publish_failure_propagates():
    class FailingPublisher:
        def publish(self, *_args):
            raise UpdaterError("create post failed with 403")

    poster = ChangelogPoster(FailingPublisher(), logger=DummyLogger(), console=Console(record=True))

    with pytest.raises(UpdaterError, match="403"):
        poster.post(_install(), CHECKLIST, auto_confirm=True)


def test_discourse_publisher_uses_client_factory():
    created = []

    class FakeClient:
        def __init__(self, install):
            self.install = install

        def create_post(self, topic_id, raw):
            created.append((self.install.name, topic_id, raw))
            return 7

    publisher = DiscourseChangelogPublisher(client_factory=FakeClient)

    assert publisher.publish(_install(), 42, CHECKLIST) == 7
    assert created == [("forum", 42, CHECKLIST)]
