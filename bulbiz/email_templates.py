"""
MJML Email Templates
Client-facing emails sent on behalf of the artisan (devis, facture, relances, RDV)
"""

from typing import Optional

from .utils.sanitization import sanitize_string

THEME = {
    "primary": "#16a34a",
    "primary_dark": "#15803d",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#6b7280",
    "border": "#e2e8f0",
}


def _esc(value: Optional[str]) -> str:
    return sanitize_string(value) or ""


def _signature_block(signature: Optional[str], artisan_name: str) -> str:
    text = signature or f"Cordialement,\n{artisan_name}"
    return f"""
    <mj-text padding="24px 0 0 0">
      {_esc(text).replace(chr(10), "<br/>")}
    </mj-text>
    """


def _contact_block(artisan_email: Optional[str], artisan_phone: Optional[str]) -> str:
    lines = []
    if artisan_email:
        lines.append(f"Email : {_esc(artisan_email)}")
    if artisan_phone:
        lines.append(f"Tél : {_esc(artisan_phone)}")
    if not lines:
        return ""
    return f"""
    <mj-text font-size="13px" color="{THEME['text_secondary']}">
      {"<br/>".join(lines)}
    </mj-text>
    """


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
    footer_note: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section background-color="#ffffff" padding="0 40px 24px 40px">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="8px 0"
              inner-padding="14px 28px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    footer_section = ""
    if footer_note:
        footer_section = f"""
        <mj-text align="center" font-size="13px" color="{THEME['text_muted']}" padding="0">
          {footer_note}
        </mj-text>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}" width="600px">
        <mj-section background-color="#ffffff" padding="32px 40px 8px 40px">
          <mj-column>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="16px 20px">
          <mj-column>
            {footer_section}
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


# ============================================
# Dossier / client link
# ============================================


def client_link_template(
    client_first_name: Optional[str],
    artisan_name: str,
    client_link: str,
    signature: Optional[str],
) -> str:
    content = f"""
    <mj-text>Bonjour {_esc(client_first_name)},</mj-text>
    <mj-text>
      Merci pour votre demande. Pour préparer au mieux notre intervention, nous avons
      besoin de quelques informations complémentaires.
    </mj-text>
    <mj-text>N'hésitez pas à nous contacter pour toute question.</mj-text>
    {_signature_block(signature, artisan_name)}
    """
    return get_base_template(
        title=f"{_esc(artisan_name)} – Complétez votre demande",
        preview_text="Complétez votre demande d'intervention",
        content_sections=content,
        cta_url=client_link,
        cta_label="📝 Compléter ma demande",
    )


# ============================================
# Devis / Facture
# ============================================


def quote_sent_template(
    client_first_name: Optional[str],
    artisan_name: str,
    validation_url: str,
    signature: Optional[str],
    artisan_email: Optional[str] = None,
    artisan_phone: Optional[str] = None,
) -> str:
    content = f"""
    <mj-text>Bonjour {_esc(client_first_name)},</mj-text>
    <mj-text>Veuillez trouver ci-joint votre devis.</mj-text>
    <mj-text>N'hésitez pas à nous contacter pour toute question.</mj-text>
    {_contact_block(artisan_email, artisan_phone)}
    {_signature_block(signature, artisan_name)}
    """
    return get_base_template(
        title=f"{_esc(artisan_name)} – Votre devis",
        preview_text="Votre devis est disponible",
        content_sections=content,
        cta_url=validation_url,
        cta_label="✅ Voir et valider le devis",
        footer_note="Ce lien est valable 30 jours.",
    )


def invoice_sent_template(
    client_first_name: Optional[str],
    artisan_name: str,
    view_url: str,
) -> str:
    content = f"""
    <mj-text>Bonjour {_esc(client_first_name)},</mj-text>
    <mj-text>Suite à notre intervention, veuillez trouver ci-joint votre facture.</mj-text>
    <mj-text>N'hésitez pas à nous contacter pour toute question.</mj-text>
    <mj-text padding="24px 0 0 0">Cordialement,<br/>{_esc(artisan_name)}</mj-text>
    """
    return get_base_template(
        title="Votre facture",
        preview_text="Votre facture est disponible",
        content_sections=content,
        cta_url=view_url,
        cta_label="Voir la facture",
    )


# ============================================
# Relances
# ============================================


def relance_info_manquante_template(
    client_first_name: Optional[str],
    artisan_name: str,
    client_link: Optional[str],
    signature: Optional[str],
) -> str:
    content = f"""
    <mj-text>Bonjour {_esc(client_first_name)},</mj-text>
    <mj-text>
      Nous avons bien reçu votre demande d'intervention mais il nous manque quelques
      informations pour pouvoir vous établir un devis.
    </mj-text>
    <mj-text>Pourriez-vous compléter votre dossier en cliquant sur le lien ci-dessous ?</mj-text>
    {_signature_block(signature, artisan_name)}
    """
    return get_base_template(
        title=f"{_esc(artisan_name)} – Informations complémentaires nécessaires",
        preview_text="Il nous manque quelques informations",
        content_sections=content,
        cta_url=client_link,
        cta_label="📝 Compléter mon dossier",
    )


def relance_devis_non_signe_template(
    client_first_name: Optional[str],
    artisan_name: str,
    signature: Optional[str],
    validation_url: Optional[str] = None,
) -> str:
    content = f"""
    <mj-text>Bonjour {_esc(client_first_name)},</mj-text>
    <mj-text>Nous vous avons récemment envoyé un devis pour votre demande d'intervention.</mj-text>
    <mj-text>
      Souhaitez-vous que nous en discutions ? Nous restons à votre disposition pour toute question.
    </mj-text>
    {_signature_block(signature, artisan_name)}
    """
    return get_base_template(
        title=f"{_esc(artisan_name)} – Suivi de votre devis",
        preview_text="Votre devis est en attente de validation",
        content_sections=content,
        cta_url=validation_url,
        cta_label="Voir le devis" if validation_url else None,
    )


# ============================================
# Rendez-vous
# ============================================


def appointment_requested_template(
    client_first_name: Optional[str],
    artisan_name: str,
    artisan_phone: Optional[str] = None,
    artisan_email: Optional[str] = None,
) -> str:
    contact = ""
    if artisan_phone:
        contact += f" au {_esc(artisan_phone)}"
    if artisan_email:
        contact += f" ou par email à {_esc(artisan_email)}"
    content = f"""
    <mj-text>Bonjour {_esc(client_first_name)},</mj-text>
    <mj-text>
      Suite à la validation de votre devis, <strong>{_esc(artisan_name)}</strong> souhaite
      convenir d'un rendez-vous pour l'intervention.
    </mj-text>
    <mj-text>Merci de le contacter{contact} pour fixer une date.</mj-text>
    <mj-text padding="24px 0 0 0">Cordialement,<br/>{_esc(artisan_name)}</mj-text>
    """
    return get_base_template(
        title=f"{_esc(artisan_name)} souhaite convenir d'un rendez-vous",
        preview_text="Prise de rendez-vous pour votre intervention",
        content_sections=content,
    )


def slots_proposed_template(
    client_first_name: Optional[str],
    artisan_name: str,
    slot_lines: list[str],
    appointment_link: Optional[str] = None,
    artisan_phone: Optional[str] = None,
) -> str:
    slots_html = "<br/>".join(f"• {_esc(line)}" for line in slot_lines)
    contact = f" au {_esc(artisan_phone)}" if artisan_phone else ""
    content = f"""
    <mj-text>Bonjour {_esc(client_first_name)},</mj-text>
    <mj-text><strong>{_esc(artisan_name)}</strong> vous propose les créneaux suivants :</mj-text>
    <mj-text padding="0 0 0 20px">{slots_html}</mj-text>
    <mj-text>Si aucun créneau ne vous convient, contactez-nous{contact}.</mj-text>
    <mj-text padding="24px 0 0 0">Cordialement,<br/>{_esc(artisan_name)}</mj-text>
    """
    return get_base_template(
        title=f"{_esc(artisan_name)} vous propose des créneaux",
        preview_text="Choisissez votre créneau d'intervention",
        content_sections=content,
        cta_url=appointment_link,
        cta_label="Choisir mon créneau" if appointment_link else None,
    )


def appointment_confirmed_template(
    client_first_name: Optional[str],
    artisan_name: str,
    display_date: str,
    time_range: str,
    address: Optional[str] = None,
    artisan_phone: Optional[str] = None,
    google_calendar_url: Optional[str] = None,
    outlook_calendar_url: Optional[str] = None,
) -> str:
    details = f"📅 {_esc(display_date)}"
    if time_range:
        details += f"<br/>🕐 {_esc(time_range)}"
    if address:
        details += f"<br/>📍 {_esc(address)}"

    calendar_links = ""
    if google_calendar_url and outlook_calendar_url:
        calendar_links = f"""
        <mj-text font-size="14px">
          Ajouter à mon agenda :
          <a href="{google_calendar_url}">Google Agenda</a> ·
          <a href="{outlook_calendar_url}">Outlook</a>
        </mj-text>
        """

    contact = f" au {_esc(artisan_phone)}" if artisan_phone else ""
    content = f"""
    <mj-text>Bonjour {_esc(client_first_name)},</mj-text>
    <mj-text>Votre rendez-vous avec <strong>{_esc(artisan_name)}</strong> est confirmé :</mj-text>
    <mj-text padding="8px 20px" container-background-color="#f0fdf4">{details}</mj-text>
    {calendar_links}
    <mj-text>En cas d'empêchement, merci de nous prévenir{contact}.</mj-text>
    <mj-text padding="24px 0 0 0">Cordialement,<br/>{_esc(artisan_name)}</mj-text>
    """
    return get_base_template(
        title=f"Rendez-vous confirmé avec {_esc(artisan_name)} – {_esc(display_date)}",
        preview_text="Votre rendez-vous est confirmé",
        content_sections=content,
    )
