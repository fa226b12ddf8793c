from query_scout.parser import ParsedOutput, ResponseParser, parse_response


def test_extracts_statement_between_markers():
    parsed = parse_response("Here you go:\n<sql>SELECT 1</sql>\nanything else")

    assert parsed.statement == "SELECT 1"
    assert parsed.disclaimer is None


def test_missing_start_marker_means_no_statement():
    assert parse_response("SELECT 1").statement is None


def test_missing_end_marker_is_treated_as_absent():
    assert parse_response("<sql>SELECT 1").statement is None


def test_content_is_trimmed_and_blank_is_absent():
    assert parse_response("<sql>\n   SELECT id\n   FROM t  \n</sql>").statement == "SELECT id\n   FROM t"
    assert parse_response("<sql>   </sql>").statement is None


def test_first_match_wins_and_markers_do_not_nest():
    text = "<sql>SELECT 1</sql> or maybe <sql>SELECT 2</sql>"
    assert parse_response(text).statement == "SELECT 1"

    nested = "<sql>SELECT <sql>inner</sql> tail</sql>"
    assert parse_response(nested).statement == "SELECT <sql>inner"


def test_disclaimer_extracted_independently():
    parsed = parse_response("<disclaimer>destructive</disclaimer><sql>DROP TABLE users</sql>")

    assert parsed == ParsedOutput(statement="DROP TABLE users", disclaimer="destructive")


def test_disclaimer_without_statement():
    parsed = parse_response("<disclaimer>cannot answer safely</disclaimer>")

    assert parsed.statement is None
    assert parsed.disclaimer == "cannot answer safely"


def test_custom_markers():
    parser = ResponseParser(sql_markers=("```sql", "```"), disclaimer_markers=("[!", "!]"))

    parsed = parser.parse("[! careful !]\n```sql\nSELECT 2\n```")
    assert parsed.statement == "SELECT 2"
    assert parsed.disclaimer == "careful"
