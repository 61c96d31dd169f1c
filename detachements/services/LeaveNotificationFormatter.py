"""Email bodies and recipients for request lifecycle notifications."""

from dataclasses import dataclass, field
from html import escape
from typing import Iterable, List, Optional

from detachements.constants.constants import PERIOD_LABELS, VAR_COLOR, PeriodMarker, RequestStatus
from detachements.core.config import settings
from detachements.models.admin import AdminUser
from detachements.models.leave import LeaveRequest
from detachements.utils.compute_days import compute_days, to_period
from detachements.utils.dates import DateInput, format_fr_date, parse_date

BODY_STYLE = "font-family: Arial, Helvetica, sans-serif; font-size: 12pt; color: #000000; line-height: 1.5;"


@dataclass
class NotificationDirective:
    """A fully rendered email, ready to be handed to the mail transport."""

    kind: str
    request_id: str
    subject: str
    text: str
    html: str
    to: List[str]
    cc: List[str] = field(default_factory=list)


def format_date_span(
    date_from: DateInput,
    date_to: DateInput,
    start_period=PeriodMarker.FULL,
    end_period=PeriodMarker.FULL,
) -> str:
    """
    Human-readable span of a request.

    - single full day: ``01/03/2024``
    - single half day: ``01/03/2024 (Matin)`` or ``01/03/2024 (Après-midi)``
    - several days: ``Du 01/03/2024 au 05/03/2024``, followed by
      ``(début : après-midi)`` and/or ``(fin : matin)`` for half-day bounds
    """
    date_to = date_to or date_from
    start_p = to_period(start_period) or PeriodMarker.FULL
    end_p = to_period(end_period) or PeriodMarker.FULL
    start_label = format_fr_date(date_from)

    if parse_date(date_from) == parse_date(date_to):
        if compute_days(date_from, date_to, start_p, end_p) == 0.5:
            return f"{start_label} ({PERIOD_LABELS[start_p]})"
        return start_label

    span = f"Du {start_label} au {format_fr_date(date_to)}"
    if start_p == PeriodMarker.PM:
        span += " (début : après-midi)"
    if end_p == PeriodMarker.AM:
        span += " (fin : matin)"
    return span


def format_request_span(record: LeaveRequest) -> str:
    return format_date_span(record.date_from, record.date_to, record.start_period, record.end_period)


def format_days_label(days) -> str:
    """``1 jour``, ``0,5 jour``, ``2,5 jours``."""
    value = float(days or 0)
    number = str(int(value)) if value.is_integer() else f"{value:.1f}".replace(".", ",")
    return f"{number} jour{'s' if value > 1 else ''}"


def _var(value) -> str:
    return f'<span style="color:{VAR_COLOR};">{escape(str(value or ""))}</span>'


def _signature_lines(admin: Optional[AdminUser]) -> List[str]:
    if admin is None:
        return [settings.MAIL_FROM_NAME]
    return [line for line in (admin.full_name, admin.title, admin.email, admin.phone) if line]


def build_validation_notification(
    record: LeaveRequest,
    admin: Optional[AdminUser],
    cc_emails: Optional[Iterable[str]] = None,
) -> NotificationDirective:
    """
    Confirmation sent when a request is validated.

    Addressed to the manager and HR, copying the fixed stakeholders and the
    applicant, signed by the admin who validated it.
    """
    dates = format_request_span(record)
    days_label = format_days_label(record.days)
    who = f"{record.full_name} – {record.entity}" if record.entity else record.full_name
    signature = _signature_lines(admin)
    type_label = f"{record.type} – {days_label}"
    signature_html = "<br />".join(escape(line) for line in signature)

    text = "\n".join([
        "Bonjour,", "",
        "Merci de bien vouloir noter le détachement de :",
        who, "",
        f"Date(s) : {dates}",
        f"À : {record.place}",
        f"En article 21 : {type_label}",
        "(Hors délai de route)", "",
        "Bonne fin de journée,", "",
        *signature,
    ])

    html = f"""
    <div style="{BODY_STYLE}">
      <p>Bonjour,</p>
      <p>Merci de bien vouloir noter le détachement de :<br />
        {_var(who)}
      </p>
      <p>
        Date(s) : {_var(dates)}<br />
        À : {_var(record.place)}<br />
        En article 21 : {_var(type_label)}<br />
        <span>(Hors délai de route)</span>
      </p>
      <p>Bonne fin de journée,</p>
      <p>{signature_html}</p>
    </div>
    """

    cc = list(settings.notification_cc_emails if cc_emails is None else cc_emails)
    if record.applicant_email and record.applicant_email not in cc:
        cc.append(record.applicant_email)

    return NotificationDirective(
        kind=RequestStatus.sent.value,
        request_id=record.id,
        subject=f"Détachement – {record.full_name}",
        text=text,
        html=html,
        to=[email for email in (record.manager_email, record.hr_email) if email],
        cc=cc,
    )


def build_decision_notification(record: LeaveRequest, kind: RequestStatus) -> NotificationDirective:
    """Refusal or cancellation notice, sent to the applicant only, with the reason."""
    refused = kind == RequestStatus.refused
    dates = format_request_span(record)
    days_label = format_days_label(record.days)
    reason = record.decision_reason or "—"
    verdict = "refusée" if refused else "annulée"
    type_label = f"{record.type} – {days_label}"

    text = "\n".join([
        "Bonjour,", "",
        f"Votre demande de détachement a été {verdict}.", "",
        f"Demandeur : {record.full_name}",
        f"Date(s) : {dates}",
        f"À : {record.place}",
        f"Article 21 : {type_label}", "",
        f"Motif : {reason}", "",
        "Cordialement,", settings.MAIL_FROM_NAME,
    ])

    html = f"""
    <div style="{BODY_STYLE}">
      <p>Bonjour,</p>
      <p>Votre demande de détachement a été <strong>{verdict}</strong>.</p>
      <p>
        Demandeur : {_var(record.full_name)}<br />
        Date(s) : {_var(dates)}<br />
        À : {_var(record.place)}<br />
        Article 21 : {_var(type_label)}
      </p>
      <p>Motif : {_var(reason)}</p>
      <p>Cordialement,<br />{escape(settings.MAIL_FROM_NAME)}</p>
    </div>
    """

    return NotificationDirective(
        kind=kind.value,
        request_id=record.id,
        subject=f"{'Refus' if refused else 'Annulation'} – Détachement {record.full_name}",
        text=text,
        html=html,
        to=[record.applicant_email],
    )
