#
# Repository Layout
#

# A top-level folder is a demo package if it holds Dyad sources in this folder.
DYAD_SOURCE_DIR = "dyad"
TEST_DIR = "test"
SCRIPTS_DIR = "scripts"

#
# Status Reporting
#

# Used when GITHUB_REPOSITORY is not available.
DEFAULT_STATUS_REPOSITORY = "JuliaComputing/DyadDemos"

#
# External Tooling
#

JULIA_BINARY = "julia"
DYAD_CLI_BINARY = "dyad"
DYAD_CLI_PATH_ENV = "DYAD_CLI_PATH"

# Precompiling during instantiate would be repeated by `Pkg.test()`.
INSTANTIATE_ENV = {"JULIA_PKG_PRECOMPILE_AUTO": "0"}

#
# Timeouts, in seconds (None: no limit)
#

TIMEOUT_PER_INSTANTIATE = 60 * 30  # 30 min
TIMEOUT_PER_TEST = 60 * 60  # 1 h
TIMEOUT_PER_COMPILE = 60 * 10  # 10 min
TIMEOUT_PER_DOC_GEN = 60 * 10  # 10 min

#
# Scaffolding
#

SCAFFOLD_DEPENDENCIES = ["ModelingToolkit", "DyadInterface", "Plots"]
DEFAULT_COMPONENT_NAME = "Hello"
