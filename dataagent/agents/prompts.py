"""
Prompt templates for the pipeline nodes.

Each system prompt opens with a "### TASK:" header naming the node's job.
"""

INTENT_SYSTEM = """### TASK: INTENT RECOGNITION
You route questions for a data analysis assistant.
Decide whether the user's message needs data analysis over a database
("data_analysis") or is small talk / out of scope ("chitchat").

Return ONLY JSON:
{"classification": "data_analysis" | "chitchat", "reply": "<short reply if chitchat, else empty>"}"""

INTENT_USER = """Conversation so far:
{multi_turn_context}

User message:
{question}"""


EVIDENCE_REWRITE_SYSTEM = """### TASK: EVIDENCE QUERY REWRITE
Rewrite the latest user question into one standalone search query,
resolving references to earlier turns. Return only the query text."""

EVIDENCE_REWRITE_USER = """Conversation so far:
{multi_turn_context}

Latest question:
{question}"""


QUERY_ENHANCE_SYSTEM = """### TASK: QUERY ENHANCEMENT
Turn the user's question into a precise canonical question for a SQL analyst
and up to three alternative phrasings useful for schema retrieval.
Use the business evidence to resolve terms and implicit filters.

Return ONLY JSON:
{"canonical_query": "...", "expanded_queries": ["...", "..."]}
Return an empty canonical_query if the question cannot be answered with data."""

QUERY_ENHANCE_USER = """Business evidence:
{evidence}

Conversation so far:
{multi_turn_context}

Question:
{question}"""


TABLE_SELECT_SYSTEM = """### TASK: TABLE SELECTION
From the schema below pick the tables needed to answer the question,
including tables required only for joins.

Return ONLY JSON:
{"tables": ["table_a", "table_b"]}"""

TABLE_SELECT_USER = """Schema:
{schema}

Business evidence:
{evidence}

Question:
{question}"""


FEASIBILITY_SYSTEM = """### TASK: FEASIBILITY ASSESSMENT
Decide whether the question can be answered from the available schema.

Return ONLY JSON:
{"feasible": true | false, "reason": "<why, in one sentence>"}"""

FEASIBILITY_USER = """Schema:
{schema}

Business evidence:
{evidence}

Question:
{question}"""


PLANNER_SYSTEM = """### TASK: EXECUTION PLANNING
Plan how to answer the question in ordered steps. Available tools:
- SQL_GENERATE: write and run one SQL query (tool_parameters.description says what it must return)
- PYTHON_GENERATE: analyse results of earlier SQL steps with Python
- REPORT: final report (tool_parameters.summary_and_recommendations)

Return ONLY JSON:
{
  "thought_process": "...",
  "execution_plan": [
    {"step": 1, "tool_to_use": "SQL_GENERATE", "tool_parameters": {"description": "..."}}
  ]
}"""

PLANNER_USER = """Schema:
{schema}

Business evidence:
{evidence}

Previous turns:
{multi_turn_context}

Question:
{question}
{repair}"""

PLANNER_REPAIR = """
The previous plan was rejected. Fix it.
Reason: {reason}
Previous plan:
{previous}"""


SQL_GENERATE_SYSTEM = """### TASK: SQL GENERATION
Write one read-only {dialect} SQL query for the step below using only the
tables and columns in the schema. Use the listed foreign keys for joins.
Return the SQL in a ```sql block.

If the schema lacks tables needed for the step, answer exactly:
SCHEMA_MISSING: <what is missing>"""

SQL_GENERATE_USER = """Schema:
{schema}

Business evidence:
{evidence}

Previous turns:
{multi_turn_context}

Question:
{question}

Current step:
{step}
{retry}"""

SQL_RETRY = """
The previous SQL failed. Write a corrected query.
Previous SQL:
{sql}
Problem:
{reason}"""


SCHEMA_ADVICE_SYSTEM = """### TASK: SCHEMA ADVICE
SQL generation reported missing schema. From the available tables that are
not yet in the schema, name those that would supply what is missing.

Return ONLY JSON:
{"tables": ["table_x"]}"""

SCHEMA_ADVICE_USER = """Missing:
{missing}

Current schema tables:
{current}

Available tables:
{available}

Question:
{question}"""


SQL_OPTIMIZE_SYSTEM = """### TASK: SQL OPTIMIZATION
Improve the SQL below without changing its meaning: select explicit
columns instead of *, filter early with WHERE, keep it a single read-only
statement. Return the SQL in a ```sql block."""

SQL_OPTIMIZE_USER = """Schema:
{schema}

Question:
{question}

Current SQL (score {score:.2f}):
{sql}"""


SEMANTIC_CHECK_SYSTEM = """### TASK: SEMANTIC CONSISTENCY CHECK
Check that the SQL answers the step exactly: right tables, filters, grouping,
time ranges and aggregation.

Return ONLY JSON:
{"passed": true | false, "reason": "<what is wrong, empty if passed>"}"""

SEMANTIC_CHECK_USER = """Schema:
{schema}

Business evidence:
{evidence}

Question:
{question}

Step:
{step}

SQL:
{sql}"""


PYTHON_GENERATE_SYSTEM = """### TASK: PYTHON ANALYSIS CODE
Write a Python 3 script using only the standard library. A variable `data`
already holds the results of earlier SQL steps:
{"<step number>": {"columns": [...], "rows": [{...}]}}.
Print the analysis results. Return the code in a ```python block."""

PYTHON_GENERATE_USER = """Question:
{question}

Step:
{step}

Available data (first rows of each step):
{preview}
{retry}"""

PYTHON_RETRY = """
The previous script failed:
{error}
Previous script:
{code}"""


PYTHON_ANALYZE_SYSTEM = """### TASK: PYTHON RESULT SUMMARY
Summarise what the analysis output shows for the step, in a few sentences."""

PYTHON_ANALYZE_USER = """Step:
{step}

Output:
{output}"""


REPORT_SYSTEM = """### TASK: REPORT
Write the final answer for the user as {format}. Lead with the direct
answer, then the supporting figures, then recommendations."""

REPORT_USER = """Question:
{question}

Plan:
{plan}

SQL results:
{sql_results}

Analysis:
{analysis}

Summary and recommendations requested:
{summary}"""
