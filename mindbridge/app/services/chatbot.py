"""Scripted support chatbot.

Replies come from an ordered list of keyword rules matched as lower-cased
substrings; the first matching rule wins. Crisis keywords are checked first.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

GREETING = (
    "Hello! I'm your AI mental health assistant. I'm here to provide initial "
    "support and help you find the right resources. How are you feeling today?"
)

DEFAULT_REPLY = (
    "Thank you for sharing that with me. Based on what you've told me, I'd "
    "recommend connecting with one of our verified therapists who can provide "
    "personalized support. Would you like me to help you find a therapist in "
    "your area?"
)

# (topic, keywords, reply)
KEYWORD_RULES: List[Tuple[str, Tuple[str, ...], str]] = [
    (
        "emergency",
        ("suicide", "kill myself", "end it all"),
        "If you're having thoughts of self-harm or suicide, please reach out "
        "immediately: Nigeria Suicide Prevention Initiative: +234 806 210 6493, "
        "or contact emergency services at 199. You can also reach out to a "
        "trusted friend, family member, or go to your nearest hospital "
        "emergency room.",
    ),
    (
        "anxiety",
        ("anxious", "anxiety", "panic"),
        "I understand you're feeling anxious. This is very common and you're "
        "not alone. Some quick techniques that might help: try the 4-7-8 "
        "breathing technique (breathe in for 4, hold for 7, exhale for 8), "
        "ground yourself by naming 5 things you can see, 4 you can touch, 3 you "
        "can hear, 2 you can smell, and 1 you can taste.",
    ),
    (
        "depression",
        ("depressed", "depression", "sad", "hopeless"),
        "I hear that you're going through a difficult time. Depression can feel "
        "overwhelming, but help is available. It's important to reach out to a "
        "professional therapist. In the meantime, try to maintain a routine, "
        "get some sunlight, and connect with supportive people in your life.",
    ),
    (
        "stress",
        ("stress", "overwhelmed", "pressure"),
        "Stress is your body's natural response to challenges. Here are some "
        "immediate stress-relief techniques: practice deep breathing, try "
        "progressive muscle relaxation, take a short walk, or listen to calming "
        "music. Regular exercise and adequate sleep also help manage stress "
        "levels.",
    ),
    (
        "greeting",
        ("hello", "hi"),
        "Hello! I'm here to support you. What's on your mind today?",
    ),
    (
        "therapist",
        ("therapist", "help", "counselor"),
        "I can help you find a qualified therapist in your area. What type of "
        "support are you looking for? We have specialists in anxiety, "
        "depression, trauma, relationships, and more.",
    ),
]


@dataclass
class ChatReply:
    topic: str
    reply: str

    @property
    def is_emergency(self) -> bool:
        return self.topic == "emergency"


def generate_reply(message: str) -> ChatReply:
    """Pick the scripted reply for a user message."""
    text = message.lower()
    for topic, keywords, reply in KEYWORD_RULES:
        if any(keyword in text for keyword in keywords):
            return ChatReply(topic=topic, reply=reply)
    return ChatReply(topic="default", reply=DEFAULT_REPLY)
