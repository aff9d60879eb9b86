"""Tests for the command router decision sequence."""

from unittest.mock import MagicMock

import pytest
from google.auth.exceptions import RefreshError

from brynix_bot.application import replies
from brynix_bot.application.handlers import ProjectHandlers
from brynix_bot.application.router import CommandRouter
from brynix_bot.infrastructure.config import BotSettings, GoogleSettings
from brynix_bot.infrastructure.drive import DriveStorage
from brynix_bot.infrastructure.sheets import SheetsRepository
from brynix_bot.infrastructure.whatsapp import MediaPayload

from .conftest import BOT_ID, GROUP_ID, TODAY, FakeClient, FakeTTS, group_message, private_message

GOOGLE = GoogleSettings(
    service_account_json="", oauth_client_id="id", oauth_client_secret="secret",
    oauth_refresh_token="token", drive_root_folder_id="ROOT",
)


def link(sessions):
    sessions.set_link(GROUP_ID, "SHEET1", "Projeto X")


class TestSetup:

    def test_setup_links_unlinked_group(self, router, sessions, client):
        message = group_message("/setup ABC123 | Projeto X")
        router.route(message, client)
        assert len(message.replies) == 1
        assert "Projeto X" in message.replies[0]
        assert "ABC123" in message.replies[0]
        stored = sessions.get_link(GROUP_ID)
        assert (stored.sheet_id, stored.project_name) == ("ABC123", "Projeto X")

    def test_setup_with_url(self, router, sessions, client):
        router.route(group_message("/setup https://docs.google.com/spreadsheets/d/1XyZ/edit | P"), client)
        assert sessions.get_link(GROUP_ID).sheet_id == "1XyZ"

    def test_setup_usage_on_missing_name(self, router, sessions, client):
        message = group_message("/setup ABC123")
        router.route(message, client)
        assert message.replies == [replies.SETUP_USAGE]
        assert sessions.get_link(GROUP_ID) is None

    def test_unlink(self, router, sessions, client):
        link(sessions)
        message = group_message("/unlink")
        router.route(message, client)
        assert sessions.get_link(GROUP_ID) is None
        assert "Projeto X" in message.replies[0]


class TestAddressing:

    def test_unaddressed_chatter_is_ignored(self, router, sessions, client):
        link(sessions)
        message = group_message("alguém viu o resumo da reunião?")
        router.route(message, client)
        assert message.replies == []

    def test_mention_by_id(self, router, sessions, client, sheets):
        link(sessions)
        message = group_message("@5511999990000 resumo curto", mentioned_ids=[BOT_ID])
        router.route(message, client)
        assert "Resumo Rápido" in message.replies[0]

    def test_alias_whole_word(self, router, sessions, client):
        link(sessions)
        message = group_message("Alice, o que vence hoje?")
        router.route(message, client)
        assert "Levantamento" in message.replies[0]

    def test_alias_inside_word_does_not_count(self, router, sessions, client):
        link(sessions)
        message = group_message("o robot quebrou, resumo?")
        router.route(message, client)
        assert message.replies == []

    def test_addressed_without_intent_shows_menu(self, router, sessions, client):
        link(sessions)
        message = group_message("@Alice bom dia!")
        router.route(message, client)
        assert message.replies == [replies.menu_card("Projeto X")]

    def test_push_name_whole_word(self, sheets, drive, sessions, reply_service):
        settings = BotSettings(aliases=(), private_commands=False, reply_chunk_size=3500)
        router = CommandRouter(ProjectHandlers(sheets, drive, settings, today=lambda: TODAY),
                               sessions, reply_service, FakeTTS(), settings)
        client = FakeClient(push_name="Ana")
        link(sessions)

        inside_word = group_message("comprei banana, resumo?")
        router.route(inside_word, client)
        assert inside_word.replies == []

        named = group_message("Ana, resumo curto")
        router.route(named, client)
        assert "Resumo Rápido" in named.replies[0]

    @pytest.mark.parametrize("word, expected", [
        ("next", "Projeto X — Próximos"),
        ("late", "Projeto X — Atrasadas"),
        ("who", "Projeto X — Membros do projeto"),
        ("summary", "Projeto X — Status"),
    ])
    def test_bare_command_words(self, router, sessions, client, word, expected):
        link(sessions)
        message = group_message(f"@Alice {word}")
        router.route(message, client)
        assert expected in message.replies[0]

    def test_bare_mute_on(self, router, sessions, client):
        message = group_message("@Alice mute on")
        router.route(message, client)
        assert message.replies == [replies.MUTED_REPLY]
        assert sessions.is_muted(GROUP_ID)


class TestMute:

    def test_mute_then_silence(self, router, sessions, client):
        link(sessions)
        mute = group_message("/mute on")
        router.route(mute, client)
        assert mute.replies == [replies.MUTED_REPLY]

        summary = group_message("/summary")
        router.route(summary, client)
        assert summary.replies == []

    def test_unmute_always_honored(self, router, sessions, client):
        sessions.set_muted(GROUP_ID, True)
        message = group_message("voltar a falar")
        router.route(message, client)
        assert message.replies == [replies.UNMUTED_REPLY]
        assert not sessions.is_muted(GROUP_ID)

    def test_unmute_when_not_muted(self, router, client):
        message = group_message("/silencio off")
        router.route(message, client)
        assert message.replies == [replies.UNMUTED_REPLY]

    def test_addressed_unmute_command_while_muted(self, router, sessions, client):
        sessions.set_muted(GROUP_ID, True)
        message = group_message("@Alice /mute off")
        router.route(message, client)
        assert message.replies == [replies.UNMUTED_REPLY]
        assert not sessions.is_muted(GROUP_ID)

    def test_chatter_with_unmute_words_is_ignored(self, router, sessions, client):
        link(sessions)
        for text in ("Bruno, pode falar com o cliente amanhã?", "ele volta a falar amanhã"):
            message = group_message(text)
            router.route(message, client)
            assert message.replies == []

    def test_muted_group_ignores_attachments(self, router, sessions, client, drive):
        link(sessions)
        sessions.set_muted(GROUP_ID, True)
        message = group_message("", has_media=True, media=MediaPayload(b"x", "image/png"))
        router.route(message, client)
        assert message.replies == []
        assert drive.uploads == []


class TestUnlinkedGroup:

    def test_data_command_gets_guidance(self, router, client):
        message = group_message("/late")
        router.route(message, client)
        assert message.replies == [replies.LINK_REQUIRED]

    def test_menu_works_without_link(self, router, client):
        message = group_message("/menu")
        router.route(message, client)
        assert message.replies == [replies.menu_card(None)]

    def test_help_card(self, router, client):
        message = group_message("/help")
        router.route(message, client)
        assert message.replies == [replies.help_card(None)]

    def test_attachment_requires_link(self, router, client, drive):
        message = group_message("", has_media=True, media=MediaPayload(b"x", "image/png"))
        router.route(message, client)
        assert message.replies == [replies.LINK_REQUIRED_FOR_MEDIA]
        assert drive.uploads == []


class TestHandlers:

    def test_note_without_text(self, router, sessions, sheets, client):
        link(sessions)
        message = group_message("/note")
        router.route(message, client)
        assert message.replies == [replies.NOTE_USAGE]
        assert sheets.log_rows == []

    def test_note_is_logged(self, router, sessions, sheets, client):
        link(sessions)
        message = group_message("/note Cliente aprovou")
        router.route(message, client)
        assert message.replies == [replies.note_confirmation("Cliente aprovou")]
        sheet_id, row = sheets.log_rows[0]
        assert sheet_id == "SHEET1"
        assert row[1:4] == ["note", "Ana", "Cliente aprovou"]

    def test_late_lists_only_overdue(self, router, sessions, client):
        link(sessions)
        message = group_message("/late")
        router.route(message, client)
        assert "Protótipo" in message.replies[0]
        assert "Kickoff" not in message.replies[0]

    def test_late_empty(self, router, sessions, sheets, client):
        link(sessions)
        sheets.tasks = [t for t in sheets.tasks if "Atras" not in t.status]
        message = group_message("/late")
        router.route(message, client)
        assert replies.NO_LATE_TASKS in message.replies[0]

    def test_who_uses_resources(self, router, sessions, sheets, client):
        link(sessions)
        sheets.resources = ["Zeca", "ana"]
        message = group_message("/who")
        router.route(message, client)
        assert message.replies[0].endswith("• ana\n• Zeca")

    def test_remind_now_logs(self, router, sessions, sheets, client):
        link(sessions)
        message = group_message("/remind now")
        router.route(message, client)
        assert "Projeto X — Status" in message.replies[0]
        assert sheets.log_rows[0][1][1] == "remind"

    def test_sheet_failure_gives_notice(self, router, sessions, sheets, client):
        link(sessions)
        sheets.fail = True
        message = group_message("/summary")
        router.route(message, client)
        assert message.replies == [replies.failure("ler a planilha")]

    def test_expired_credentials_give_sheet_notice(self, sessions, drive, reply_service, bot_settings, client):
        service = MagicMock()
        service.spreadsheets().values().get().execute.side_effect = RefreshError("invalid_grant")
        handlers = ProjectHandlers(SheetsRepository(GOOGLE, service=service), drive, bot_settings)
        router = CommandRouter(handlers, sessions, reply_service, FakeTTS(), bot_settings)
        link(sessions)

        message = group_message("/summary")
        router.route(message, client)
        assert message.replies == [replies.failure("ler a planilha")]


class TestAttachments:

    def test_upload_confirmation(self, router, sessions, drive, client):
        link(sessions)
        message = group_message("", has_media=True, media=MediaPayload(b"%PDF", "application/pdf", "ata.pdf"))
        router.route(message, client)
        assert message.replies == [replies.upload_confirmation("Projeto X", drive.url)]
        data, filename, mime_type, path = drive.uploads[0]
        assert path == "Projeto X/Documentos de Projeto"
        assert filename.startswith("ata_") and filename.endswith(".pdf")

    def test_upload_failure(self, router, sessions, drive, client):
        link(sessions)
        drive.fail = True
        message = group_message("", has_media=True, media=MediaPayload(b"x", "image/png"))
        router.route(message, client)
        assert message.replies == [replies.DRIVE_FAILED]

    def test_revoked_drive_token_gives_upload_notice(self, sheets, sessions, reply_service, bot_settings, client):
        service = MagicMock()
        service.files().list().execute.side_effect = RefreshError("invalid_grant")
        handlers = ProjectHandlers(sheets, DriveStorage(GOOGLE, service=service), bot_settings)
        router = CommandRouter(handlers, sessions, reply_service, FakeTTS(), bot_settings)
        link(sessions)

        message = group_message("", has_media=True, media=MediaPayload(b"%PDF", "application/pdf", "ata.pdf"))
        router.route(message, client)
        assert message.replies == [replies.DRIVE_FAILED]
        assert sheets.log_rows == []

    def test_media_not_downloadable(self, router, sessions, client):
        link(sessions)
        message = group_message("", has_media=True, media=None)
        router.route(message, client)
        assert message.replies == [replies.DRIVE_FAILED]


class TestPrivate:

    def test_free_text_goes_to_llm(self, router, reply_service, client):
        message = private_message("/summary quanto custa?")
        router.route(message, client)
        assert message.replies == ["LLM: /summary quanto custa?"]
        assert reply_service.prompts[0][1]["display_name"] == "Ana"

    def test_intro(self, router, client):
        message = private_message("Quem é você?")
        router.route(message, client)
        assert message.replies == [replies.intro_card()]

    def test_audio_sends_voice_note(self, router, client):
        message = private_message("/audio olá")
        router.route(message, client)
        assert message.replies == []
        assert client.files[0][1] == b"ID3fake"

    def test_audio_unavailable(self, sheets, drive, sessions, reply_service, bot_settings, client):
        router = CommandRouter(
            ProjectHandlers(sheets, drive, bot_settings), sessions, reply_service,
            FakeTTS(clip=None), bot_settings,
        )
        message = private_message("/audio")
        router.route(message, client)
        assert message.replies == [replies.TTS_UNAVAILABLE]

    def test_private_commands_flag(self, sheets, drive, sessions, reply_service, client):
        settings = BotSettings(aliases=("alice",), private_commands=True)
        router = CommandRouter(
            ProjectHandlers(sheets, drive, settings, today=lambda: TODAY),
            sessions, reply_service, None, settings,
        )
        message = private_message("/menu")
        router.route(message, client)
        assert message.replies == [replies.menu_card(None)]
        assert reply_service.prompts == []


class TestResilience:

    def test_catch_all_reply(self, router, sessions, client):
        link(sessions)

        def explode(link):
            raise RuntimeError("boom")

        router.handlers.summary = explode
        message = group_message("/summary")
        router.route(message, client)
        assert message.replies == [replies.TECHNICAL_ERROR_REPLY]

    def test_failed_error_reply_does_not_raise(self, router, client):
        message = group_message("/menu", fail_reply=True)
        router.route(message, client)

    def test_long_reply_is_chunked(self, sheets, drive, sessions, client):
        settings = BotSettings(aliases=("alice",), reply_chunk_size=120)
        router = CommandRouter(ProjectHandlers(sheets, drive, settings), sessions, None, None, settings)
        message = group_message("/menu")
        router.route(message, client)
        assert len(message.replies) > 1
        assert all(len(part) <= 120 for part in message.replies)
        assert "\n".join(message.replies) == replies.menu_card(None)


def test_strip_mentions(router):
    assert router.strip_mentions("@5511999 @Alice: resumo") == "resumo"
    assert router.strip_mentions("Alice, o que vence hoje?") == "o que vence hoje?"
    assert router.strip_mentions("resumo Alice") == "resumo Alice"
