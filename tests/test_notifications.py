"""Document notifications: email first, then SMS, failures reported per channel"""

from datetime import date

import pytest

from bulbiz.services import notification_service, twilio_service
from bulbiz.services.notification_service import format_fr_long_date, send_notification, sms_failed


async def _send(db, user, email="julie.durand@example.com", phone="06 12 34 56 78", sms_body="Votre devis"):
    return await send_notification(
        db,
        user,
        client_email=email,
        client_phone=phone,
        notification_type="quote",
        subject="Votre devis",
        mjml_content="<mjml></mjml>",
        sms_body=sms_body,
    )


class TestSendNotification:
    @pytest.mark.asyncio
    async def test_both_channels(self, db, user, providers):
        result = await _send(db, user)

        assert result["email_sent"] is True
        assert result["email_provider"] == "resend"
        assert result["sms_sent"] is True
        assert result["sms_phone"] == "+33612345678"
        assert providers.sms == [{"to": "+33612345678", "body": "Votre devis"}]

    @pytest.mark.asyncio
    async def test_email_error_does_not_block_sms(self, db, user, providers):
        providers.email_error = "quota exceeded"
        result = await _send(db, user)

        assert result["email_sent"] is False
        assert result["email_error"] == "quota exceeded"
        assert result["sms_sent"] is True

    @pytest.mark.asyncio
    async def test_invalid_phone(self, db, user, providers):
        result = await _send(db, user, phone="12")

        assert result["sms_sent"] is False
        assert result["sms_error"] == notification_service.INVALID_PHONE
        assert providers.sms == []
        assert sms_failed(result) is True

    @pytest.mark.asyncio
    async def test_sms_disabled_on_profile(self, db, user, providers):
        user.sms_enabled = False
        result = await _send(db, user)
        assert result["sms_error"] is None
        assert providers.sms == []

    @pytest.mark.asyncio
    async def test_no_sms_body(self, db, user, providers):
        result = await _send(db, user, sms_body=None)
        assert result["sms_sent"] is False
        assert providers.sms == []

    @pytest.mark.asyncio
    async def test_twilio_not_configured_is_not_a_failure(self, db, user, providers):
        providers.sms_result = (False, twilio_service.SMS_NOT_CONFIGURED)
        result = await _send(db, user, email=None)

        assert result["email_sent"] is False
        assert result["email_error"] is None
        assert sms_failed(result) is False


class TestFrenchDates:
    def test_long_date(self):
        assert format_fr_long_date(date(2026, 3, 10)) == "Mardi 10 mars 2026"
        assert format_fr_long_date(date(2026, 8, 15)) == "Samedi 15 août 2026"
        assert format_fr_long_date(None) == ""
