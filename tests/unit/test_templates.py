from __future__ import annotations

import pytest

from nerdiversary.notifications.contracts import PendingNotification
from nerdiversary.notifications.templates import lead_time_title, render_payload, results_url
from tests.support import TEST_DEFAULTS, milestone, utc


@pytest.mark.parametrize(
  ("lead", "title"),
  [
    (0, "🎂 It's happening NOW!"),
    (1, "🎂 1 minutes away!"),
    (15, "🎂 15 minutes away!"),
    (60, "🎂 1 hour away!"),
    (89, "🎂 1 hour away!"),
    (90, "🎂 2 hours away!"),
    (1439, "🎂 24 hours away!"),
    (1440, "🎂 1 day away!"),
    (2160, "🎂 2 days away!"),
    (10080, "🎂 7 days away!"),
  ],
)
def test_lead_time_title_rounds_half_up(lead, title):
  assert lead_time_title("🎂", lead) == title


def test_results_url_keeps_family_separators_readable():
  assert results_url("https://nerdiversary.com/", None) == "https://nerdiversary.com/results.html"
  assert results_url("https://nerdiversary.com", "Ada|1990-05-15|08:30,Bo%20B|2001-02-03|00:00") == "https://nerdiversary.com/results.html?family=Ada|1990-05-15|08%3A30,Bo%2520B|2001-02-03|00%3A00"


def test_render_payload_builds_service_worker_contract():
  pending = PendingNotification(subscription_id="sub", person_name="Ada", milestone=milestone(utc(2030, 1, 1), icon="📆"), lead_minutes=1440)
  payload = render_payload(pending, defaults=TEST_DEFAULTS, family_param="Ada|1990-05-15|08:30")

  assert payload.title == "📆 1 day away!"
  assert payload.body == "Ada: 10,000 Days"
  assert payload.icon == "/assets/icon-192.png"
  assert payload.badge == "/assets/favicon-96x96.png"
  assert payload.tag == "nerdiversary-days-10000-1440"
  assert payload.data["family"] == "Ada|1990-05-15|08:30"
  assert payload.data["url"].startswith("https://nerdiversary.com/results.html?family=")


def test_render_payload_without_family_links_to_results_page():
  pending = PendingNotification(subscription_id="sub", person_name="Ada", milestone=milestone(utc(2030, 1, 1)), lead_minutes=0)
  payload = render_payload(pending, defaults=TEST_DEFAULTS)
  assert payload.data == {"url": "https://nerdiversary.com/results.html"}
