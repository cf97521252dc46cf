from __future__ import annotations

from eodcopilot.models import BranchRef, CommitRecord, MergeRequestRecord, TimeWindow
from processors.digest import build_digest, render_digest

from tests.helpers_gitlab import commit_payload, mr_payload


def test_empty_digest_renders_placeholders(day_window: TimeWindow) -> None:
    text = render_digest(build_digest(day_window, [], [], []))

    assert text == "\nCommits (0):\nNone\n\nMRs Created:\nNone\n\nMRs Reviewed:\nNone\n"


def test_digest_lines(day_window: TimeWindow) -> None:
    commit = CommitRecord.from_api(commit_payload("abc", "Add SSO button"), BranchRef("feature-x"))
    created = MergeRequestRecord.from_api(
        mr_payload("Add SSO", "feature-x", description="Wires the IdP", web_url="https://gl/mr/1")
    )
    undocumented = MergeRequestRecord.from_api(mr_payload("Bump deps", "deps", description="  ", web_url="https://gl/mr/2"))
    reviewed = MergeRequestRecord.from_api(mr_payload("Fix cache", "fix", web_url="https://gl/mr/3"))

    text = render_digest(build_digest(day_window, [commit], [created, undocumented], [reviewed]))

    assert text == (
        "\nCommits (1):\n"
        "• Add SSO button (feature-x) → https://gitlab.example.com/group/app/-/commit/abc\n"
        "\nMRs Created:\n"
        "• Add SSO\n  Description: Wires the IdP\n  URL: https://gl/mr/1\n"
        "• Bump deps\n  Description: No description provided\n  URL: https://gl/mr/2\n"
        "\nMRs Reviewed:\n"
        "• Fix cache (https://gl/mr/3)\n"
    )


def test_render_is_deterministic(day_window: TimeWindow) -> None:
    digest = build_digest(day_window, [], [MergeRequestRecord.from_api(mr_payload("A", "a"))], [])

    assert render_digest(digest) == render_digest(digest)
