"""
tests/test_state.py — Guild Document Codec Tests
=================================================
"""

from __future__ import annotations

from datetime import UTC, datetime

from conftest import NOW, make_draw

from tipdraw.constants import DEFAULT_ACCEPTED_CRYPTOCURRENCIES, DEFAULT_FEATURE_TOGGLES
from tipdraw.engine.state import Donation, DonorRole, GuildState, Streak, User


class TestDocumentCodec:
    def test_round_trip(self):
        state = GuildState(guild_id=5)
        state.config.allowed_recipients = ["bob"]
        state.config.donor_roles["10"] = DonorRole(role_id="10", name="Gold", min_amount=51)
        state.config.feature_toggles["vipDraws"] = False
        state.users["1"] = User(
            id="1",
            total_donated=12.5,
            donations=[Donation(12.5, "LTC", 0.5, NOW, "bob")],
            entries={"draw_1": 2},
            achievements=["first_steps"],
            streak=Streak(current=1, longest=1, last_donation=NOW),
            selected_draw="draw_1",
        )
        state.draws["draw_1"] = make_draw(entries={"1": 2}, created_at=NOW, max_entries=10)

        restored = GuildState.from_document(5, state.to_document())
        assert restored == state

    def test_document_keys(self):
        doc = GuildState(guild_id=1).to_document()
        assert set(doc) == {"config", "users", "donationDraws"}
        assert doc["config"]["acceptedCryptocurrencies"] is None

    def test_empty_document_defaults(self):
        state = GuildState.from_document(1, None)
        assert state.users == {} and state.draws == {}
        assert state.config.currencies == list(DEFAULT_ACCEPTED_CRYPTOCURRENCIES)
        assert state.config.feature_toggles == DEFAULT_FEATURE_TOGGLES

    def test_corrupted_recipients_are_preserved(self):
        state = GuildState.from_document(1, {"config": {"allowedRecipients": [None, "bob", 7]}})
        assert state.config.allowed_recipients == [None, "bob", 7]

    def test_epoch_millis_and_duplicate_achievements(self):
        doc = {"users": {"1": {
            "totalDonated": 10,
            "achievements": ["first_steps", "first_steps"],
            "streaks": {"current": 2, "longest": 2, "lastDonation": 1772366400000},
        }}}
        user = GuildState.from_document(1, doc).users["1"]
        assert user.achievements == ["first_steps"]
        assert user.streak.last_donation == datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def test_get_or_create_user(self):
        state = GuildState(guild_id=1)
        user = state.get_or_create_user(42)
        assert user.id == "42"
        assert state.get_or_create_user("42") is user
