"""
Pipeline node names and output sentinels
"""

INTENT_RECOGNITION = "intent_recognition"
EVIDENCE_RECALL = "evidence_recall"
QUERY_ENHANCE = "query_enhance"
SCHEMA_RECALL = "schema_recall"
TABLE_RELATION = "table_relation"
FEASIBILITY_ASSESSMENT = "feasibility_assessment"
PLANNER = "planner"
PLAN_EXECUTOR = "plan_executor"
HUMAN_FEEDBACK = "human_feedback"
SQL_GENERATE = "sql_generate"
SQL_OPTIMIZE = "sql_optimize"
SEMANTIC_CONSISTENCY = "semantic_consistency"
SQL_EXECUTE = "sql_execute"
PYTHON_GENERATE = "python_generate"
PYTHON_EXECUTE = "python_execute"
PYTHON_ANALYZE = "python_analyze"
REPORT_GENERATOR = "report_generator"

# sql_generate output values with routing meaning; never valid SQL
SQL_GENERATE_END = "<sql_generate:end>"
SCHEMA_MISSING_SENTINEL = "<sql_generate:schema_missing>"

# Prefix the model uses to report insufficient schema
SCHEMA_MISSING_MARKER = "SCHEMA_MISSING:"
