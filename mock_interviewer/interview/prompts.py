"""
Interview prompt templates.

This module contains the greeting and the prompts sent to the language model,
keeping them separate from the session logic for easier maintenance and editing.
"""

import json
from typing import Sequence

from .models import Message, SessionConfig


GREETING_TEMPLATE = "Hello! I'm your AI Interviewer for the {role} position. Please introduce yourself."

INTERVIEWER_PERSONA = """
You are an experienced technical interviewer.
Your goal is to conduct a professional interview.
- Ask one clear question at a time.
- Start by introducing yourself and asking the candidate to introduce themselves.
- If the candidate answers correctly, acknowledge it briefly and move to a deeper or related specific question.
- If the candidate struggles, offer a small hint or ask a simpler related question.
- Keep your responses concise and conversational (suitable for voice output).
- Do not write code or long explanations unless asked.
- Focus on technical topics relevant to the job description provided (or general software engineering if none).
""".strip()

FALLBACK_REPLY = "I apologize, I didn't catch that."


class InterviewPrompts:
    """Collection of all interview-related prompts."""

    @staticmethod
    def greeting(config: SessionConfig) -> str:
        """First assistant message of every session."""
        return GREETING_TEMPLATE.format(role=config.role)

    @staticmethod
    def context_block(config: SessionConfig) -> str:
        """Candidate and position details appended to the persona."""
        lines = [f"Role: {config.role}"]
        if config.skills.strip():
            lines.append(f"Skills to assess: {config.skills.strip()}")
        if config.job_description.strip():
            lines.append(f"Job description: {config.job_description.strip()}")
        if config.resume_text.strip():
            lines.append(f"Candidate experience: {config.resume_text.strip()}")
        return "\n".join(lines)

    @staticmethod
    def system_instruction(config: SessionConfig) -> str:
        """System instruction for a chat turn."""
        return f"{INTERVIEWER_PERSONA}\n\nInterview context:\n{InterviewPrompts.context_block(config)}"

    @staticmethod
    def feedback_prompt(history: Sequence[Message], config: SessionConfig) -> str:
        """Prompt asking for the end-of-session report."""
        transcript = [m.to_dict() for m in history]
        return f"""
You are an experienced technical interviewer reviewing a mock interview you just conducted.

Interview context:
{InterviewPrompts.context_block(config)}

Transcript: {json.dumps(transcript, ensure_ascii=False)}

Assess the candidate's answers only (not your own questions). Return:
{{
    "rating": <integer 0..100>,
    "summary": "<2-3 sentence overall assessment>",
    "strengths": ["<short point>", ...],
    "weaknesses": ["<short point>", ...],
    "improvements": ["<concrete, actionable suggestion>", ...]
}}

Respond ONLY with minified JSON (no code fences).
        """.strip()
