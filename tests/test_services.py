"""Pure helpers: .ics output, dossier summary, email parsing, phone normalization"""

from datetime import date, datetime, timezone
from itertools import takewhile

from bulbiz.services.email_parser import parse_email_content
from bulbiz.services.ics import (
    IcsEvent,
    escape_ics,
    event_from_dossier,
    fold_line,
    generate_ics_content,
    google_calendar_url,
)
from bulbiz.services.summary import build_summary
from bulbiz.shared.validators import normalize_phone

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestIcs:
    def _event(self, **overrides):
        values = {
            "title": "RDV – Julie Durand (Fuite)",
            "start_date": "2026-03-10",
            "start_time": "09:00",
            "end_time": "10:00",
            "location": "12 rue des Lilas, 75011 Paris",
            "uid": "dossier-1@bulbiz.fr",
        }
        values.update(overrides)
        return IcsEvent(**values)

    def test_floating_times_and_crlf(self):
        content = generate_ics_content(self._event(), now=NOW)
        lines = content.split("\r\n")

        assert lines[0] == "BEGIN:VCALENDAR"
        assert lines[-1] == "END:VCALENDAR"
        assert "DTSTART:20260310T090000" in lines
        assert "DTEND:20260310T100000" in lines
        assert "DTSTAMP:20260301T120000Z" in lines
        assert "UID:dossier-1@bulbiz.fr" in lines

    def test_single_thirty_minute_alarm(self):
        content = generate_ics_content(self._event(), now=NOW)
        assert content.count("BEGIN:VALARM") == 1
        assert "TRIGGER:-PT30M" in content

    def test_text_is_escaped(self):
        content = generate_ics_content(self._event(description="Ligne 1\nLigne 2; fin"), now=NOW)
        assert "LOCATION:12 rue des Lilas\\, 75011 Paris" in content
        assert "DESCRIPTION:Ligne 1\\nLigne 2\\; fin" in content
        assert escape_ics("a\\b") == "a\\\\b"

    def test_carriage_returns_normalized(self):
        assert escape_ics("Ligne 1\r\nLigne 2\rLigne 3") == "Ligne 1\\nLigne 2\\nLigne 3"
        content = generate_ics_content(self._event(description="a\r\nb"), now=NOW)
        assert "\r" not in content.replace("\r\n", "")

    def test_long_lines_are_folded(self):
        description = "Fuite sous l'évier, joint à changer. " * 6
        content = generate_ics_content(self._event(description=description), now=NOW)
        lines = content.split("\r\n")

        assert all(len(line.encode("utf-8")) <= 75 for line in lines)
        start = next(i for i, line in enumerate(lines) if line.startswith("DESCRIPTION:Fuite"))
        continuation = takewhile(lambda line: line.startswith(" "), lines[start + 1 :])
        unfolded = lines[start] + "".join(line[1:] for line in continuation)
        assert unfolded == "DESCRIPTION:" + escape_ics(description)

    def test_fold_keeps_multibyte_characters_whole(self):
        folded = fold_line("SUMMARY:" + "é" * 80)
        for chunk in folded.split("\r\n"):
            assert len(chunk.encode("utf-8")) <= 75
        assert folded.replace("\r\n ", "") == "SUMMARY:" + "é" * 80
        assert fold_line("UID:short") == "UID:short"

    def test_google_link(self):
        url = google_calendar_url(self._event())
        assert url.startswith("https://calendar.google.com/calendar/render?")
        assert "dates=20260310T090000%2F20260310T100000" in url

    def test_dossier_without_time_has_no_event(self, make_dossier):
        dossier = make_dossier(appointment_date=date(2026, 3, 10))
        assert event_from_dossier(dossier) is None

    def test_dossier_event_defaults_to_one_hour(self, make_dossier):
        dossier = make_dossier(appointment_date=date(2026, 3, 10), appointment_time_start="09:00")
        event = event_from_dossier(dossier)

        assert event.start_date == "2026-03-10"
        assert event.end_time == "10:00"
        assert event.uid == f"{dossier.id}@bulbiz.fr"
        assert event.title == "RDV – Julie Durand (Fuite)"
        assert "📞 Tél : 0612345678" in event.description


class TestSummary:
    def test_headline_and_bullets(self, make_dossier):
        summary = build_summary(make_dossier())

        assert summary["headline"] == "Demande : fuite – urgence 48h"
        assert summary["bullets"][0] == "Adresse : 12 rue des Lilas, 75011 Paris"
        assert "Catégorie : Fuite" in summary["bullets"]
        assert len(summary["bullets"]) == 5

    def test_long_description_is_truncated(self, make_dossier):
        summary = build_summary(make_dossier(description="x" * 300, address=None, client_email=None))
        assert summary["bullets"][0] == "x" * 120 + "…"
        assert len(summary["bullets"]) == 3


class TestEmailParser:
    RAW = (
        "Bonjour,\n"
        "Je suis M. Jean Dupont, j'ai une fuite sous l'évier, c'est urgent.\n"
        "Tél : 06 12 34 56 78\n"
        "Email : jean.dupont@example.com\n"
        "Adresse : 12 rue de la Paix, 75002 Paris"
    )

    def test_extracts_contact_fields(self):
        result = parse_email_content(self.RAW)

        assert result["client_phone"] == "0612345678"
        assert result["client_email"] == "jean.dupont@example.com"
        assert result["client_first_name"] == "Jean"
        assert result["client_last_name"] == "Dupont"
        assert result["address"] == "12 rue de la Paix, 75002 Paris"

    def test_category_and_urgency(self):
        result = parse_email_content(self.RAW)
        # fuite is checked before evier
        assert result["category"] == "fuite"
        assert result["urgency"] == "aujourdhui"
        assert result["description"] == self.RAW

    def test_wc_checked_first(self):
        assert parse_email_content("Mes toilettes fuient depuis hier")["category"] == "wc"

    def test_48h(self):
        result = parse_email_content("Pouvez-vous passer sous 48h pour le chauffe-eau ?")
        assert result["urgency"] == "48h"
        assert result["category"] == "chauffe_eau"

    def test_international_phone(self):
        assert parse_email_content("Appelez le +33 6 12 34 56 78 svp")["client_phone"] == "+33612345678"

    def test_labelled_name(self):
        result = parse_email_content("Nom : Julie Durand\nMerci de me rappeler")
        assert (result["client_first_name"], result["client_last_name"]) == ("Julie", "Durand")

    def test_short_text_has_nothing(self):
        assert parse_email_content("Salut") == {}


class TestPhoneNormalization:
    def test_french_mobile(self):
        assert normalize_phone("06 12 34 56 78") == "+33612345678"

    def test_already_international(self):
        assert normalize_phone("+33 6 12 34 56 78") == "+33612345678"

    def test_garbage(self):
        assert normalize_phone("12") is None
        assert normalize_phone(None) is None
