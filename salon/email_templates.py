"""
MJML Email Templates
Appointment emails for clients, compiled to HTML by email_service
"""

import html
from typing import Optional

from .config import BUSINESS_NAME, FRONTEND_URL

# Salon theme colors - Plum/Stone color scheme
THEME = {
    "primary": "#9d174d",
    "primary_light": "#fce7f3",
    "background": "#faf7f5",
    "text_primary": "#1c1917",
    "text_secondary": "#44403c",
    "text_muted": "#78716c",
    "border": "#e7e5e4",
    "success": "#15803d",
    "danger": "#b91c1c",
}


def _e(value) -> str:
    """Escape user-provided text before it goes into markup"""
    return html.escape(str(value or ""), quote=True)


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 20px 0 20px">
          <mj-column>
            <mj-text align="center" font-size="22px" font-weight="700" color="{THEME['primary']}">
              {_e(BUSINESS_NAME)}
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="16px 0 32px 0" />
          </mj-column>
        </mj-section>

        <!-- Main Content -->
        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="{THEME['text_muted']}" padding="0">
              Recibes este correo porque tienes una cita con {_e(BUSINESS_NAME)}.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _appointment_details(
    scheduled_date: str, scheduled_time: str, employee_name: str, services: list[str]
) -> str:
    service_lines = "<br/>".join(f"• {_e(name)}" for name in services) or "-"
    return f"""
    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="0">
      📅 {_e(scheduled_date)}
    </mj-text>

    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="0">
      ⏰ {_e(scheduled_time)}
    </mj-text>

    <mj-text align="center" font-size="16px" color="{THEME['text_primary']}" padding="0 0 20px 0">
      💇 {_e(employee_name)}
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}" padding="0 0 20px 0">
      {service_lines}
    </mj-text>
    """


def appointment_booked_template(
    client_name: str,
    employee_name: str,
    scheduled_date: str,
    scheduled_time: str,
    services: list[str],
) -> str:
    """Booking received - the appointment awaits confirmation by the salon"""
    content = f"""
    <mj-text>
      Hola {_e(client_name)},
    </mj-text>

    <mj-text>
      Hemos recibido tu reservación. Te avisaremos cuando el salón la confirme.
    </mj-text>

    {_appointment_details(scheduled_date, scheduled_time, employee_name, services)}
    """

    return get_base_template(
        title="¡Reservación recibida! ✨",
        preview_text=f"Tu cita del {_e(scheduled_date)} a las {_e(scheduled_time)}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/mis-citas",
        cta_label="Ver mis citas",
    )


def appointment_status_template(
    client_name: str,
    status: str,
    employee_name: str,
    scheduled_date: str,
    scheduled_time: str,
    services: list[str],
    reason: Optional[str] = None,
) -> str:
    """Status change of an existing appointment (confirmed, cancelled, ...)"""
    reason_section = ""
    if reason:
        reason_section = f"""
    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Motivo: {_e(reason)}
    </mj-text>
        """

    color = THEME["danger"] if status == "Cancelada" else THEME["success"]
    content = f"""
    <mj-text>
      Hola {_e(client_name)},
    </mj-text>

    <mj-text align="center" font-size="18px" font-weight="600" color="{color}" padding="20px 0">
      Tu cita ahora está: {_e(status)}
    </mj-text>

    {_appointment_details(scheduled_date, scheduled_time, employee_name, services)}
    {reason_section}
    """

    return get_base_template(
        title=f"Cita {_e(status)}",
        preview_text=f"Tu cita del {_e(scheduled_date)} cambió de estado",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/mis-citas",
        cta_label="Ver mis citas",
    )


def appointment_reminder_template(
    client_name: str,
    employee_name: str,
    scheduled_date: str,
    scheduled_time: str,
    services: list[str],
) -> str:
    """Reminder sent ahead of an upcoming appointment"""
    content = f"""
    <mj-text>
      Hola {_e(client_name)},
    </mj-text>

    <mj-text>
      Te recordamos tu próxima cita. Si no puedes asistir, cancélala desde la aplicación.
    </mj-text>

    {_appointment_details(scheduled_date, scheduled_time, employee_name, services)}
    """

    return get_base_template(
        title="Recordatorio de tu cita ⏰",
        preview_text=f"Te esperamos el {_e(scheduled_date)} a las {_e(scheduled_time)}",
        content_sections=content,
    )
