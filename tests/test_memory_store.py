"""Tests for the in-memory user memory store."""

from datetime import timedelta

import pytest

from search_intel.models.memory import UserPreferences
from search_intel.storage.memory_store import (
    InMemoryUserMemoryStore,
    extract_key_topics,
    extract_location_context,
)


@pytest.fixture
def store(clock):
    return InMemoryUserMemoryStore(clock=clock)


class TestHelpers:
    """Test summary heuristics."""

    def test_key_topics(self):
        topics = extract_key_topics("Looking for remote work and good schools for my kids")
        assert topics == ["work", "remote", "schools", "kids"]

    def test_key_topics_limited(self):
        text = "career job work remote office housing rent buy budget cost"
        assert len(extract_key_topics(text)) == 8

    def test_location_context(self):
        locations = extract_location_context("comparing Austin TX with New York City and Austin TX")
        assert locations == ["Austin TX", "New York City"]


class TestPreferences:
    """Test preference storage."""

    def test_unknown_user(self, store):
        assert store.get_preferences("nobody") is None
        assert store.get_conversation_summary("nobody") is None
        assert store.get_contextual_memory("nobody") is None

    def test_preferences_are_copied(self, store):
        preferences = UserPreferences(career_field="nursing", discussed_cities=["Austin"])
        store.set_preferences("user-1", preferences)

        preferences.discussed_cities.append("Denver")
        stored = store.get_preferences("user-1")
        stored.discussed_cities.append("Boise")

        assert store.get_preferences("user-1").discussed_cities == ["Austin"]


class TestConversationMemory:
    """Test rolling conversation summaries."""

    def test_record_exchange(self, store, clock):
        summary = store.record_exchange(
            "user-1",
            "What is the current rent in Austin TX?",
            "Rent in Austin TX averages around $1,600 for a one bedroom.",
        )

        assert summary.message_count == 2
        assert summary.last_updated == clock()
        assert summary.summary.startswith("User: What is the current rent in Austin TX?")
        assert "rent" in summary.key_topics
        assert summary.urgent_queries == ["What is the current rent in Austin TX?"]
        assert summary.location_context == ["Austin TX"]

        memory = store.get_contextual_memory("user-1")
        assert memory.recent_searches == ["What is the current rent in Austin TX?"]
        assert memory.adaptive_prompts == ["Focus on time-sensitive and current information"]

    def test_summary_keeps_last_twenty_lines(self, store):
        for i in range(15):
            store.record_exchange("user-1", f"question number {i}", f"answer number {i}")

        summary = store.get_conversation_summary("user-1")

        lines = summary.summary.split("\n")
        assert len(lines) == 20
        assert lines[-1] == "Assistant: answer number 14"
        assert summary.message_count == 30

    def test_short_inputs_not_recorded_as_searches(self, store):
        store.record_exchange("user-1", "thanks", "You're welcome!")

        assert store.get_contextual_memory("user-1").recent_searches == []

    def test_recent_searches_newest_first_and_bounded(self, store):
        for i in range(12):
            store.record_exchange("user-1", f"housing search {i:02d}", "ok")

        searches = store.get_contextual_memory("user-1").recent_searches
        assert len(searches) == 10
        assert searches[0] == "housing search 11"

    def test_urgent_queries_bounded(self, store):
        for i in range(7):
            store.record_exchange("user-1", f"latest news {i}", "ok")

        summary = store.get_conversation_summary("user-1")
        assert summary.urgent_queries == [f"latest news {i}" for i in range(2, 7)]

    def test_adaptive_prompts_for_career_and_family(self, store):
        store.record_exchange("user-1", "career options for family with kids", "Here are some ideas")

        prompts = store.get_contextual_memory("user-1").adaptive_prompts
        assert "Consider career growth opportunities and industry presence" in prompts
        assert "Prioritize family-friendly amenities and school districts" in prompts

    def test_record_search_timestamp(self, store, clock):
        store.record_search_timestamp("user-1")
        assert store.get_contextual_memory("user-1").last_web_search == clock()

        later = clock() + timedelta(minutes=5)
        store.record_search_timestamp("user-1", later)
        assert store.get_contextual_memory("user-1").last_web_search == later


class TestContextBuilding:
    """Test user and memory context derived from stored state."""

    def test_user_context_without_user(self, store):
        context = store.build_user_context(None, ["hello"])

        assert context.conversation_history == ["hello"]
        assert context.target_cities == []
        assert context.last_web_search is None

    def test_user_context_from_memory(self, store, clock):
        store.set_preferences(
            "user-1",
            UserPreferences(
                career_field="nursing",
                discussed_cities=["Austin TX"],
                lifestyle_needs=["outdoors"],
                must_have_amenities=["parks"],
                cost_of_living_preferences=["low rent"],
            ),
        )
        store.record_exchange("user-1", "Would nursing jobs in Denver CO pay well?", "Yes, it is.")
        store.record_search_timestamp("user-1")

        context = store.build_user_context("user-1", ["Would nursing jobs in Denver CO pay well?"])

        assert context.target_cities == ["Austin TX", "Denver CO"]
        assert context.preferences.career_field == "nursing"
        assert context.preferences.lifestyle == ["outdoors"]
        assert context.preferences.priorities == ["parks", "low rent"]
        assert context.recent_topics == ["job"]
        assert context.last_web_search == clock()

    def test_memory_context(self, store):
        store.set_preferences(
            "user-1",
            UserPreferences(career_field="nursing", discussed_cities=["Austin", "Denver"]),
        )
        store.record_exchange("user-1", "housing costs in Austin TX", "They are rising.")

        memory = store.build_memory_context("user-1")

        assert [(p.key, p.value) for p in memory.preferences] == [
            ("career", "nursing"),
            ("cities", "Austin, Denver"),
        ]
        assert memory.facts[0].content == "Previously asked: housing costs in Austin TX"
        assert memory.facts[0].source == "search_history"
        assert memory.facts[1].content == "Discussed location: Austin TX"

    def test_memory_context_without_user(self, store):
        memory = store.build_memory_context(None)
        assert memory.preferences == []
        assert memory.facts == []
