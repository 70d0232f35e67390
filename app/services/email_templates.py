"""
Email body templates.

Bodies are rendered with jinja2 from inline templates; content is kept
minimal and plain.
"""

from jinja2 import Environment

# Participant and team names are user input
_env = Environment(autoescape=True)

_LAYOUT = _env.from_string(
    """\
<html>
  <body style="font-family: Arial, sans-serif; color: #222;">
    <h2>{{ heading }}</h2>
    {{ body|safe }}
    <p style="color: #888; font-size: 12px;">{{ app_name }}</p>
  </body>
</html>
"""
)

_REGISTRATION_CONFIRMATION = _env.from_string(
    """\
<p>Hi {{ name }},</p>
<p>Your registration for <strong>{{ event_title }}</strong> is confirmed.</p>
<ul>
  <li>Registration ID: {{ registration_id }}</li>
  <li>Type: {{ registration_type }}{% if team_name %} ({{ team_name }}){% endif %}</li>
  <li>Date: {{ event_date }}{% if location %} at {{ location }}{% endif %}</li>
  <li>Amount paid: {{ currency }} {{ amount }}</li>
  <li>Payment ID: {{ payment_id }}</li>
</ul>
"""
)

_ADMIN_REGISTRATION_NOTICE = _env.from_string(
    """\
<p>A new paid registration was confirmed.</p>
<table border="1" cellpadding="4" cellspacing="0">
  <tr><td>Event</td><td>{{ event_title }} (#{{ event_id }})</td></tr>
  <tr><td>Registration</td><td>#{{ registration_id }} ({{ registration_type }})</td></tr>
  <tr><td>Participant</td><td>{{ name }} &lt;{{ email }}&gt;{% if phone %}, {{ phone }}{% endif %}</td></tr>
  {% if team_name %}<tr><td>Team</td><td>{{ team_name }} ({{ member_count }} members)</td></tr>{% endif %}
  <tr><td>Amount</td><td>{{ currency }} {{ amount }}</td></tr>
  <tr><td>Order / Payment</td><td>{{ order_id }} / {{ payment_id }}</td></tr>
</table>
"""
)

_MEMBERSHIP_CONFIRMATION = _env.from_string(
    """\
<p>Hi {{ name }},</p>
<p>Your class membership payment was received.</p>
<ul>
  <li>Membership ID: {{ membership_id }}</li>
  <li>Amount: {{ currency }} {{ amount }}</li>
  {% if issue_date %}<li>Valid from {{ issue_date }}{% if end_date %} to {{ end_date }}{% endif %}</li>{% endif %}
</ul>
"""
)

_JOB_SUMMARY = _env.from_string(
    """\
<p>The <strong>{{ job }}</strong> job finished at {{ ran_at }}.</p>
<ul>
  <li>Candidates: {{ candidates }}</li>
  <li>Processed: {{ processed }}</li>
  <li>Failed: {{ failed|length }}</li>
  {% for label, value in extra.items() %}<li>{{ label }}: {{ value }}</li>{% endfor %}
</ul>
"""
)

_JOB_ERROR = _env.from_string(
    """\
<p>The <strong>{{ job }}</strong> job hit errors at {{ ran_at }}.</p>
<ul>
{% for item in failed %}  <li>#{{ item.id }}: {{ item.error }}</li>
{% endfor %}</ul>
<p>Failed items were left in place and will be retried on the next run.</p>
"""
)

_EVENT_EXPORT = _env.from_string(
    """\
<p>Attached is the registration export for <strong>{{ title }}</strong>
(#{{ event_id }}, {{ start_date }}).</p>
<p>{{ row_count }} registration rows. The event and its registrations are being
removed from the live tables.</p>
"""
)


def _wrap(heading: str, body: str, app_name: str) -> str:
    return _LAYOUT.render(heading=heading, body=body, app_name=app_name)


def registration_confirmation(app_name: str, **context) -> tuple[str, str]:
    """Returns (subject, html) for the participant confirmation email."""
    subject = f"Registration confirmed: {context['event_title']}"
    body = _REGISTRATION_CONFIRMATION.render(**context)
    return subject, _wrap("Registration confirmed", body, app_name)


def admin_registration_notice(app_name: str, **context) -> tuple[str, str]:
    subject = f"New registration #{context['registration_id']} for {context['event_title']}"
    body = _ADMIN_REGISTRATION_NOTICE.render(**context)
    return subject, _wrap("New registration", body, app_name)


def membership_confirmation(app_name: str, **context) -> tuple[str, str]:
    subject = "Class membership confirmed"
    body = _MEMBERSHIP_CONFIRMATION.render(**context)
    return subject, _wrap("Membership confirmed", body, app_name)


def job_summary(app_name: str, summary: dict) -> tuple[str, str]:
    subject = f"[{summary['job']}] processed {summary['processed']} of {summary['candidates']}"
    body = _JOB_SUMMARY.render(**summary)
    return subject, _wrap("Cleanup summary", body, app_name)


def job_error(app_name: str, summary: dict) -> tuple[str, str]:
    subject = f"[{summary['job']}] {len(summary['failed'])} item(s) failed"
    body = _JOB_ERROR.render(**summary)
    return subject, _wrap("Cleanup errors", body, app_name)


def event_export(app_name: str, **context) -> tuple[str, str]:
    subject = f"Event export: {context['title']} ({context['start_date']})"
    body = _EVENT_EXPORT.render(**context)
    return subject, _wrap("Event data export", body, app_name)
