"""Prompt templates for each generation stage."""

from __future__ import annotations

from cdi_optimizer.services.generation_client import ChatMessage

STATUS_CHOICES = '"Not documented", "Insufficient detail", "Unable to determine"'

FACTS_SYSTEM_PROMPT = """\
You are a clinical documentation abstractor. You extract facts from \
physician notes into a structured record.

STRICT RULES:
- ONLY record values EXPLICITLY stated in the notes. Every value must be \
traceable to the source text.
- Do NOT infer, normalize, or guess. If something is not documented, leave \
the field null or the list empty.
- An empty field means "not documented". Never write "negative", "none" or \
"normal" unless the notes literally say so.
- Your entire response must be a single JSON object. No markdown, no \
explanation.
"""

FACTS_OUTPUT_FORMAT = """\
{"patient":{"age":null,"sex":null,"relevant_history":[]},\
"timeline":[{"time":null,"event":"..."}],\
"symptoms":[],\
"vitals":[{"name":"...","value":"...","time":null}],\
"labs":[{"name":"...","value":"...","time":null}],\
"imaging":[],\
"treatments":[],\
"disposition":null}"""

NARRATIVE_SYSTEM_PROMPT = """\
You are a clinical documentation improvement specialist writing a revised \
History of Present Illness (HPI).

STRICT RULES - VIOLATION OF ANY RULE INVALIDATES YOUR OUTPUT:
- ONLY use facts EXPLICITLY stated in the doctor's notes or the extracted \
facts. Every clinical statement must be directly traceable to the notes.
- Do NOT add, infer, assume, or fabricate ANY clinical findings, diagnoses, \
lab values, vital signs, symptoms, or details not present in the notes.
- Do NOT introduce new diagnoses or conditions.
- Do NOT speculate about patient history, timeline, or severity beyond what \
is explicitly stated.
- Use the guideline excerpts to inform structure and emphasis ONLY.
- Write one continuous narrative paragraph. No headers, no bullets, no \
markdown, no preamble.
"""

GAP_SYSTEM_PROMPT = f"""\
You are a clinical documentation gap analyst comparing physician notes \
against an MCG guideline. Your output MUST be valid JSON and nothing else.

RULES:
- Only list guideline criteria relevant to the patient's condition as \
described in the notes.
- "mcg_clause" quotes or closely paraphrases the guideline criterion.
- "status" must be EXACTLY one of: {STATUS_CHOICES}.
- "evidence_in_notes" is a short verbatim quote from the notes that relates \
to the clause, or "None" when nothing relates.
- "required_documentation" tells the physician WHAT to document. It must NOT \
claim the patient has or does not have a condition.
- Your entire response must be a single JSON object. No markdown, no code \
fences, no explanation.
"""

GAP_OUTPUT_FORMAT = """\
{"missing_criteria":[{"mcg_clause":"...","status":"Not documented",\
"evidence_in_notes":"None","required_documentation":"..."}]}"""

EXPLANATION_SYSTEM_PROMPT = """\
You are a clinical documentation auditor preparing an audit-ready \
explanation for a utilization reviewer.

For each guideline criterion listed, explain in plain prose which evidence \
in the notes maps to it and why it is judged missing, insufficient, or \
indeterminate. Then summarize which guideline criteria ARE supported by the \
notes, quoting the supporting evidence.

RULES:
- Only cite evidence that appears verbatim or near-verbatim in the notes.
- Do not make clinical judgments about the patient beyond the documentation.
- Plain text paragraphs only. No markdown, no headers, no bullets.
"""

AUDIT_SYSTEM_PROMPT = """\
You are a strict clinical documentation auditor.

Compare the REVISED HPI, MISSING CRITERIA and MAPPING EXPLANATION below \
against the ORIGINAL DOCTOR NOTES. Remove or correct ANY statement that is \
NOT explicitly supported by the original notes. Do not add anything new. If \
the outputs are faithful to the notes, return them unchanged.

Your entire response must be a single JSON object with exactly the keys \
"revised_hpi", "missing_criteria" and "mapping_explanation". No markdown, no \
explanation.
"""


def facts_messages(notes: str) -> list[ChatMessage]:
    return [
        ChatMessage(role="system", content=FACTS_SYSTEM_PROMPT),
        ChatMessage(
            role="user",
            content=(
                f"DOCTOR NOTES:\n{notes}\n\n"
                f"OUTPUT FORMAT (respond with ONLY this JSON):\n{FACTS_OUTPUT_FORMAT}"
            ),
        ),
    ]


def narrative_messages(notes: str, facts_json: str, excerpts: str) -> list[ChatMessage]:
    return [
        ChatMessage(role="system", content=NARRATIVE_SYSTEM_PROMPT),
        ChatMessage(
            role="user",
            content=(
                f"DOCTOR NOTES:\n{notes}\n\n"
                f"EXTRACTED FACTS:\n{facts_json}\n\n"
                f"RELEVANT GUIDELINE EXCERPTS:\n{excerpts}\n\n"
                "Respond with ONLY the revised HPI text."
            ),
        ),
    ]


def gap_messages(notes: str, facts_json: str, criteria_context: str) -> list[ChatMessage]:
    return [
        ChatMessage(role="system", content=GAP_SYSTEM_PROMPT),
        ChatMessage(
            role="user",
            content=(
                f"DOCTOR NOTES:\n{notes}\n\n"
                f"EXTRACTED FACTS:\n{facts_json}\n\n"
                f"MCG GUIDELINE:\n{criteria_context}\n\n"
                "OUTPUT FORMAT (respond with ONLY this JSON, nothing else):\n"
                f"{GAP_OUTPUT_FORMAT}"
            ),
        ),
    ]


def gap_retry_messages(notes: str, criteria_context: str) -> list[ChatMessage]:
    return [
        ChatMessage(
            role="user",
            content=(
                "Your previous response was not valid JSON. You MUST respond with "
                "ONLY a JSON object. No markdown code fences. No explanation. No "
                "text before or after.\n\n"
                "Given these doctor notes and guideline, return missing criteria.\n\n"
                f"DOCTOR NOTES:\n{notes}\n\n"
                f"MCG GUIDELINE:\n{criteria_context}\n\n"
                f"\"status\" must be EXACTLY one of: {STATUS_CHOICES}.\n\n"
                "Respond with EXACTLY this structure and nothing else:\n"
                f"{GAP_OUTPUT_FORMAT}\n\n"
                "Your ENTIRE response must start with { and end with }. "
                "No other characters."
            ),
        ),
    ]


def explanation_messages(
    notes: str, gaps_json: str, criteria_context: str
) -> list[ChatMessage]:
    return [
        ChatMessage(role="system", content=EXPLANATION_SYSTEM_PROMPT),
        ChatMessage(
            role="user",
            content=(
                f"DOCTOR NOTES:\n{notes}\n\n"
                f"MCG GUIDELINE:\n{criteria_context}\n\n"
                f"MISSING CRITERIA:\n{gaps_json}\n\n"
                "Respond with ONLY the mapping explanation text."
            ),
        ),
    ]


def audit_messages(
    notes: str, narrative: str, gaps_json: str, explanation: str
) -> list[ChatMessage]:
    return [
        ChatMessage(role="system", content=AUDIT_SYSTEM_PROMPT),
        ChatMessage(
            role="user",
            content=(
                f"ORIGINAL DOCTOR NOTES:\n{notes}\n\n"
                f"REVISED HPI TO AUDIT:\n{narrative}\n\n"
                f"MISSING CRITERIA TO AUDIT:\n{gaps_json}\n\n"
                f"MAPPING EXPLANATION TO AUDIT:\n{explanation}\n\n"
                "Respond with ONLY this JSON:\n"
                '{"revised_hpi":"...","missing_criteria":[...],'
                '"mapping_explanation":"..."}'
            ),
        ),
    ]
