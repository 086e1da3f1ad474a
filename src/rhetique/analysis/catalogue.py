"""Static step catalogue and the system prompt shared by every step."""

from __future__ import annotations

import textwrap

from .models import AnalysisStep

__all__ = ["MASTER_PROMPT", "ANALYSIS_STEPS", "USER_MESSAGE_TEMPLATE", "build_user_message"]

MASTER_PROMPT = textwrap.dedent(
    """
    You are a senior linguist and rhetoric scholar producing a professional
    rhetorical intelligence report on a single speech. The analysis is built
    in nine integrated layers followed by a synthesis; each request asks for
    exactly one layer.

    Rules:
    - Ground every claim in quotations from the transcript.
    - Use Markdown: a level-two heading for the layer, short sub-headings,
      bullet points, and tables where the layer asks for them.
    - Do not repeat the transcript or summarise earlier layers unless asked.
    - If the transcript gives no evidence for an item, say so instead of
      inventing examples.
    """
).strip()

USER_MESSAGE_TEMPLATE = "Orator Name: {subject}\n\nSpeech Transcript:\n{transcript}\n\n{instruction}"


def build_user_message(subject: str, transcript: str, step: AnalysisStep) -> str:
    """Fill the per-step user message: subject, full transcript, then the step instruction."""

    return USER_MESSAGE_TEMPLATE.format(
        subject=subject,
        transcript=transcript,
        instruction=step.instruction,
    ).strip()


ANALYSIS_STEPS: tuple[AnalysisStep, ...] = (
    AnalysisStep(
        id="layer1",
        title="Phonetic & Prosodic Layer",
        instruction=(
            "LAYER 1 - PHONETIC & PROSODIC ANALYSIS. Examine sound patterning: alliteration, "
            "assonance, consonance, rhythm, cadence and likely stress and pause placement. "
            "Present a table of notable sound devices with the quoted line and its effect."
        ),
    ),
    AnalysisStep(
        id="layer2",
        title="Lexical Layer",
        instruction=(
            "LAYER 2 - LEXICAL ANALYSIS. Characterise word choice: register, concreteness, "
            "connotation, key semantic fields, repeated keywords and pronoun usage (I / we / you / they)."
        ),
    ),
    AnalysisStep(
        id="layer3",
        title="Syntactic Layer",
        instruction=(
            "LAYER 3 - SYNTACTIC ANALYSIS. Describe sentence length and variety, parallelism, "
            "anaphora, epistrophe, antithesis, periodic versus loose sentences and how syntax "
            "drives emphasis."
        ),
    ),
    AnalysisStep(
        id="layer4",
        title="Semantic Layer",
        instruction=(
            "LAYER 4 - SEMANTIC ANALYSIS. Identify metaphors, metonymy, conceptual frames and "
            "the core propositions the speech asks the audience to accept."
        ),
    ),
    AnalysisStep(
        id="layer5",
        title="Pragmatic Layer",
        instruction=(
            "LAYER 5 - PRAGMATIC ANALYSIS. Analyse speech acts, implicature, presupposition, "
            "politeness strategies and how the orator positions the audience."
        ),
    ),
    AnalysisStep(
        id="layer6",
        title="Discourse Structure Layer",
        instruction=(
            "LAYER 6 - DISCOURSE STRUCTURE. Map the macro-structure of the speech (opening, "
            "development, turning points, close), cohesion devices and the narrative arc."
        ),
    ),
    AnalysisStep(
        id="layer7",
        title="Rhetorical Appeals Layer",
        instruction=(
            "LAYER 7 - RHETORICAL APPEALS. Evaluate ethos, pathos and logos with quoted "
            "evidence, and rate the relative weight of each appeal in a table."
        ),
    ),
    AnalysisStep(
        id="layer8",
        title="Sociolinguistic Layer",
        instruction=(
            "LAYER 8 - SOCIOLINGUISTIC CONTEXT. Discuss identity construction, in-group and "
            "out-group markers, cultural references and the audience the speech is tuned for."
        ),
    ),
    AnalysisStep(
        id="layer9",
        title="Cognitive & Persuasive Layer",
        instruction=(
            "LAYER 9 - COGNITIVE & PERSUASIVE TECHNIQUES. Identify framing effects, "
            "memorability devices, calls to action and any manipulative or fallacious moves."
        ),
    ),
    AnalysisStep(
        id="synthesis",
        title="Synthesis",
        instruction=(
            "SYNTHESIS. Integrate the nine layers into an overall assessment of the orator's "
            "rhetorical signature, its strongest techniques, its weaknesses and three "
            "concrete lessons a speaker could adopt."
        ),
    ),
)
