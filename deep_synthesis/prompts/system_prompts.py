# Prompt templates for the LLM-backed services.
# Templates use str.format placeholders; literal braces are doubled.
# The output-format block is chosen by the caller depending on whether the
# selected model guarantees JSON output.

# =============================================================================
# SEARCH QUERY GENERATION
# =============================================================================
QUERY_GENERATION_PROMPT = """You are a research assistant helping to generate arXiv search queries.

<instructions>
Please generate {num_queries} different arXiv search queries that would help find relevant academic papers for this research topic.
Each query should focus on a different aspect or subtopic of the research question.

Your task is to:
1. Generate effective search queries using arXiv API syntax
2. Extract any date constraints mentioned in the research query

Date handling rules:
- If the query mentions dates, extract them into the dateConstraint object
- If a specific day is not mentioned, use the 1st of the month (01)
- If a specific month is not mentioned, use January (01-01)
- For seasons: Spring=03-01, Summer=06-01, Fall=09-01, Winter=12-01
- A whole year such as "in 2023" is "between" 2023-01-01 and 2023-12-31
- If no dates are mentioned, use type "none" with null dates

{output_format}

arXiv query syntax guidelines:
1. Use field prefixes (e.g., ti:, abs:, au:) for targeted field searches; every query should use ti: or abs:
2. Use Boolean operators (AND, OR, ANDNOT) in UPPERCASE
3. Use parentheses to group related terms, joining synonyms inside a group with OR
4. Use normal spaces; do not URL-encode anything
</instructions>

<research_query>
{query}
</research_query>"""

QUERY_JSON_OUTPUT_FORMAT = """Your response MUST be a valid JSON object with:
- A "queries" property containing an array of strings, where each string is a search query
- A "dateConstraint" property with:
  * "type": one of ["none", "before", "after", "between"]
  * "beforeDate": formatted as YYYY-MM-DD (for "before" or "between" types), otherwise null
  * "afterDate": formatted as YYYY-MM-DD (for "after" or "between" types), otherwise null"""

QUERY_TEXT_OUTPUT_FORMAT = """Format your response as a JSON object with "queries" (array of strings) and optionally a "dateConstraint" object.
Wrap the JSON object in <content></content> tags and write nothing outside them.
Your response will be parsed as JSON, so ensure it's properly formatted."""

QUERY_GENERATION_SCHEMA = {
    "type": "object",
    "properties": {
        "queries": {"type": "array", "items": {"type": "string"}},
        "dateConstraint": {
            "type": "object",
            "properties": {
                "type": {"type": "string", "enum": ["none", "before", "after", "between"]},
                "beforeDate": {"type": ["string", "null"]},
                "afterDate": {"type": ["string", "null"]},
            },
            "required": ["type", "beforeDate", "afterDate"],
            "additionalProperties": False,
        },
    },
    "required": ["queries", "dateConstraint"],
    "additionalProperties": False,
}

# =============================================================================
# RELEVANCY SCORING
# =============================================================================
RELEVANCY_SCORING_PROMPT = """You are a research assistant helping to calculate relevancy scores for academic papers.

<instructions>
Please analyze each paper provided and calculate relevancy scores based on how well they match the research query.
For each paper, identified by its arXiv ID, provide:
1. An overall relevancy score (0-100) where higher values indicate greater relevance
2. Specific reasons that contribute to the score (both positive and negative factors)
3. Matching keywords between the paper and research query
4. A confidence level for your assessment (0-100)

{output_format}
</instructions>

<research_query>
{query}
</research_query>

<papers>
{papers}
</papers>"""

RELEVANCY_JSON_OUTPUT_FORMAT = """Your response MUST be a valid JSON object with a "papers" array where each element contains:
- "arxivId": the arXiv ID of the paper, exactly as given
- "overallScore": number between 0-100
- "reasons": array of objects with "reason" (string) and "impactOnScore" (number) properties
- "keywordsMatched": array of strings
- "confidenceLevel": number between 0-100"""

RELEVANCY_TEXT_OUTPUT_FORMAT = """Format your response as a JSON object with a "papers" array, one element per paper, each with "arxivId", "overallScore", "reasons", "keywordsMatched" and "confidenceLevel".
Your response will be parsed as JSON, so ensure it's properly formatted."""

PAPER_BLOCK = """[Paper: {arxiv_id}
Title: {title}
Authors: {authors}
Publication Date: {submitted_date}
Abstract: {abstract}]"""

_REASON_SCHEMA = {
    "type": "object",
    "properties": {
        "reason": {"type": "string", "description": "Explanation of a factor affecting relevancy"},
        "impactOnScore": {"type": "number", "description": "Numeric impact on the overall score"},
    },
    "required": ["reason", "impactOnScore"],
    "additionalProperties": False,
}

RELEVANCY_SCORING_SCHEMA = {
    "type": "object",
    "properties": {
        "papers": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "arxivId": {"type": "string", "description": "The arXiv ID of the paper"},
                    "overallScore": {"type": "number", "description": "Overall relevancy score between 0-100"},
                    "reasons": {"type": "array", "items": _REASON_SCHEMA},
                    "keywordsMatched": {"type": "array", "items": {"type": "string"}},
                    "confidenceLevel": {"type": "number", "description": "Confidence level in the assessment (0-100)"},
                },
                "required": ["arxivId", "overallScore", "reasons", "keywordsMatched", "confidenceLevel"],
                "additionalProperties": False,
            },
        }
    },
    "required": ["papers"],
    "additionalProperties": False,
}

# =============================================================================
# QUERY REFINEMENT
# =============================================================================
REFINEMENT_FOCUS = """Focus on:
1. Clarifying specific sub-topics of interest
2. Identifying relevant methodologies
3. Establishing timeframe considerations
4. Understanding the academic context"""

REFINEMENT_INITIAL_PROMPT = """You are a research assistant helping to refine a research query. Your goal is to help the user clarify their research interests before searching for relevant papers on arXiv.

Initial Query: {query}

Please ask thoughtful follow-up questions to help refine this query. {focus}

Ask only 1-2 questions at a time to keep the conversation focused. Be conversational but focused on academic precision.

IMPORTANT: At the end of your response, always include a line with "REFINED QUERY: [your suggested refined query based on information so far]"
Even if you're still gathering information, provide a refined version of the query that represents your best suggestion given what you know so far."""

REFINEMENT_FOLLOW_UP_PROMPT = """You are a research assistant helping to refine a research query through conversation. Your goal is to help the user clarify their research interests before searching for relevant papers.

Here is the conversation history:
{history}

Continue the conversation by responding to the user's last message. Ask 1-2 focused follow-up questions that help refine the research query. {focus}

Be conversational but focused on academic precision.

IMPORTANT: At the end of your response, always include a line with "REFINED QUERY: [your suggested refined query based on the conversation so far]"
Even if more clarification is needed, provide your best suggestion for a refined query based on what you know so far."""

# =============================================================================
# BRIEF GENERATION
# =============================================================================
BRIEF_GENERATION_PROMPT = """You are an expert academic writer producing a concise literature review.

Write the review in markdown:
- Start with a single "# " heading that states the topic
- Organize the body into 2-3 "## " sections that synthesize findings, methods and open questions
- Cite papers inline with their citation number in square brackets, e.g. [1] or [2, 3]
- Only cite the papers provided; do not invent sources
- Do not include a bibliography; it is generated separately

Research query:
{query}

Papers (JSON):
{papers}"""
