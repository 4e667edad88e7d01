TLS_KEYWORD_INSERTION = "__thread "

# Postgres declares `no_such_variable` as part of a macro hack; it is never a real variable.
SENTINEL_VARIABLE_NAME = "no_such_variable"

# Keywords that may precede the type specifier of a declaration we rewrite.
# NON_EXEC_STATIC is a postgres macro that expands to `static` (or nothing).
DECL_PREFIX_KEYWORDS = ("const", "static", "extern", "NON_EXEC_STATIC")

# Bit value of CXTranslationUnit_KeepGoing, which clang.cindex does not name.
PARSE_KEEP_GOING = 0x200

LIBCLANG_PATH_ENV_VAR = "TLSIFY_LIBCLANG_PATH"
LOG_LEVEL_ENV_VAR = "TLSIFY_LOG_LEVEL"

WORKER_SUBCOMMAND = "rewrite-globals-worker"
