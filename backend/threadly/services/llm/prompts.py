"""
Prompt Builder

Turns the conversation inputs into the provider-agnostic user prompt and
holds the system instruction every adapter sends alongside it. The output
is a pure function of its inputs, so identical requests produce identical
prompts.
"""

SYSTEM_INSTRUCTION = (
    "You are Threadly, an expert communication strategist and conversation "
    "coach. Your goal is to analyze messaging contexts and generate strategic "
    "response options. You do not just generate text; you provide coaching, "
    "risk assessment, and predicted outcomes. Always respond with a single "
    "valid JSON object and nothing else."
)

OUTPUT_CONTRACT = """{
  "analysis": {
    "sentiment": "string (1-2 words)",
    "dynamics": "string (brief description)",
    "urgency": "high|medium|low",
    "urgencyReasoning": "string (1 sentence)",
    "keyPoints": ["point1", "point2", "point3"]
  },
  "responses": [
    {
      "strategyType": "recommended|bold|safe|caution",
      "replyText": "The actual message text to send",
      "predictedOutcome": "2-3 sentences about likely reaction",
      "riskLevel": "low|medium|high",
      "riskExplanation": "1-2 sentences explaining risks",
      "reasoning": "2-3 sentences why this approach works",
      "followUp": "What to do after their response"
    }
  ],
  "simulator": {
    "theirResponse": "A realistic reply they might send if the user uses the recommended response",
    "yourFollowUp": "A good follow-up message for the user",
    "finalReaction": "How they would likely react to the follow-up"
  }
}"""


def tone_label(tone: int) -> str:
    """Bucket the 0-100 tone slider into a human label."""
    if tone < 33:
        return "casual"
    elif tone < 66:
        return "balanced"
    else:
        return "formal"


def build_prompt(history: str, scenario: str, tone: int, context: str = "") -> str:
    """
    Compile the user prompt for a conversation analysis.

    Args:
        history: The pasted conversation
        scenario: Scenario tag (e.g. "Professional")
        tone: Tone preference, 0 (very casual) to 100 (very formal)
        context: Optional free-text context from the user

    Returns:
        User prompt string
    """
    scenario = getattr(scenario, "value", scenario)
    context = context.strip() if context else ""

    prompt = f"""**CONVERSATION CONTEXT:**
Scenario: {scenario}
Tone Preference: {tone} (0=very casual, 100=very formal) - Interpretation: {tone_label(tone)}
Additional Context: {context or "None provided"}

**CONVERSATION HISTORY:**
{history.strip()}

**YOUR TASK:**
1. Analyze the conversation (sentiment, dynamics, urgency).
2. Generate exactly 3 response options with different strategies:
   - Response 1: "recommended" (best balanced approach)
   - Response 2: "bold" OR "safe" (depends on context)
   - Response 3: Alternative strategic approach ("caution" or another "safe"/"bold")
3. Simulate how the conversation continues if the user sends the recommended reply.

**OUTPUT FORMAT:**
Return ONLY a JSON object with this exact structure and exactly 3 entries in "responses":

{OUTPUT_CONTRACT}"""

    return prompt.strip()
