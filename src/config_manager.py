"""
Case Configuration System for SCM Input Preprocessing

This module resolves the run configuration of the single-column model with a
clear hierarchy:
1. Built-in defaults (lowest priority)
2. Experiment file ``<config_dir>/<experiment_name>.yaml``
3. Command-line ``key=value`` overrides (highest priority)

The experiment file holds two sections: ``case_config`` (scalar run
parameters) and ``physics_config`` (one physics suite and field count per
column). Errors in the file or on the command line are recoverable: the
resolved values are shown and the user is asked whether to continue.
Under-specified physics columns need one explicit decision, and a file that
specifies no physics for column 1 (or is missing) is unusable.

The resolved ``case_config`` section is written to
``<output_dir>/<experiment_name>.yaml`` and can be read back with
load_case_config().
"""

import logging
import re
import yaml
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from logging_utils import ConfigurationError, ConfigurationAborted


logger = logging.getLogger(__name__)

UNSET_SUITE = 'none'
UNSET_FIELDS = -999

TRUE_STRINGS = ('.true.', '.t.', 't', 'true', 'yes', 'y')
FALSE_STRINGS = ('.false.', '.f.', 'f', 'false', 'no', 'n')


@dataclass(frozen=True)
class PhysicsColumn:
    """Physics suite name and number of physics fields used by one column."""
    suite: str = UNSET_SUITE
    n_phy_fields: int = UNSET_FIELDS

    @property
    def suite_set(self) -> bool:
        return self.suite != UNSET_SUITE

    @property
    def fields_set(self) -> bool:
        return self.n_phy_fields >= 0


@dataclass(frozen=True)
class CaseConfig:
    """
    Resolved configuration of one SCM experiment.

    Scalar fields mirror the ``case_config`` section. Time quantities are in
    seconds. time_scheme: 1 forward Euler, 2 filtered leapfrog. Forcing types:
    1 revealed, 2 horizontal advective, 3 relaxation. reference_profile_choice:
    1 McClatchey, 2 mid-latitude summer standard atmosphere.
    """
    experiment_name: str = 'twpice'

    model_name: str = 'GFS'
    n_columns: int = 1
    case_name: str = 'twpice'
    dt: float = 600.0
    time_scheme: int = 2
    runtime: float = 2138400.0
    output_frequency: float = 600.0
    swrad_frequency: float = 1200.0
    lwrad_frequency: float = 1200.0
    n_levels: int = 64
    output_dir: str = '../output'
    output_file: str = 'output'
    thermo_forcing_type: int = 2
    mom_forcing_type: int = 3
    relax_time: float = 7200.0
    sfc_flux_spec: bool = False
    reference_profile_choice: int = 1
    year: int = 2006
    month: int = 1
    day: int = 19
    hour: int = 3

    physics_suite_dir: str = '../src/ccpp/tests/'
    physics: Tuple[PhysicsColumn, ...] = field(default=())

    def case_config_section(self) -> Dict[str, Any]:
        """Scalar ``case_config`` values in declaration order."""
        return {name: getattr(self, name) for name in CASE_CONFIG_FIELDS}

    @property
    def physics_suite(self) -> List[str]:
        return [column.suite for column in self.physics]

    @property
    def n_phy_fields(self) -> List[int]:
        return [column.n_phy_fields for column in self.physics]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'experiment_name': self.experiment_name,
            **self.case_config_section(),
            'physics_suite_dir': self.physics_suite_dir,
            'physics_suite': self.physics_suite,
            'n_phy_fields': self.n_phy_fields,
        }


CASE_CONFIG_FIELDS = tuple(
    f.name for f in fields(CaseConfig)
    if f.name not in ('experiment_name', 'physics_suite_dir', 'physics')
)
_FIELD_TYPES = {f.name: f.type for f in fields(CaseConfig) if f.name in CASE_CONFIG_FIELDS}

PHYSICS_CONFIG_FIELDS = ('physics_suite', 'n_phy_fields', 'physics_suite_dir')


# =============================================================================
# PURE OVERLAYS
# =============================================================================

def _coerce_value(name: str, value: Any) -> Any:
    """Convert a parsed value to the declared type of a case_config field."""
    expected = _FIELD_TYPES[name]

    if value is None:
        raise ValueError(f"{name}: missing value")

    if expected is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            token = value.strip().lower()
            if token in TRUE_STRINGS:
                return True
            if token in FALSE_STRINGS:
                return False
        raise ValueError(f"{name}: cannot interpret {value!r} as a logical")

    if expected is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and re.fullmatch(r'[+-]?\d+', value.strip()):
            return int(value)
        raise ValueError(f"{name}: cannot interpret {value!r} as an integer")

    if expected is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            try:
                # Fortran double precision exponents, e.g. 600.0d0
                return float(value.strip().replace('d', 'e').replace('D', 'E'))
            except ValueError:
                pass
        raise ValueError(f"{name}: cannot interpret {value!r} as a real number")

    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    raise ValueError(f"{name}: cannot interpret {value!r} as a string")


def apply_overrides(config: CaseConfig, overrides: Mapping[str, Any]) -> CaseConfig:
    """
    Return a copy of config with case_config values replaced.

    The overlay is all-or-nothing: an unknown key or a value that cannot be
    converted rejects the whole mapping.

    Args:
        config: Record to start from
        overrides: Mapping of case_config field name to value

    Returns:
        New CaseConfig

    Raises:
        ValueError: If a key is unknown or a value has the wrong type
    """
    if not isinstance(overrides, Mapping):
        raise ValueError(f"expected key/value assignments, got {type(overrides).__name__}")

    changes = {}
    for key, value in overrides.items():
        name = str(key).strip().lower()
        if name not in CASE_CONFIG_FIELDS:
            raise ValueError(f"unknown case_config variable '{key}'")
        changes[name] = _coerce_value(name, value)

    return replace(config, **changes)


_ASSIGNMENT = re.compile(
    r"""\s*(?P<key>[A-Za-z_]\w*)\s*=\s*(?P<value>'[^']*'|"[^"]*"|[^\s,'"]+)\s*,?"""
)


def parse_override_fragment(fragment: str) -> Dict[str, Any]:
    """
    Parse command-line overrides of the form ``var1='string' var2=d.d var3=i``.

    Values are returned as the raw text (quotes removed) and converted to the
    declared field type by apply_overrides(). Keys are case-insensitive.

    Raises:
        ValueError: If the fragment is not a sequence of assignments
    """
    overrides = {}
    position = 0
    fragment = fragment.strip()

    while position < len(fragment):
        match = _ASSIGNMENT.match(fragment, position)
        if match is None:
            raise ValueError(f"cannot parse command-line overrides near '{fragment[position:]}'")

        raw = match.group('value')
        if raw[0] in "'\"":
            raw = raw[1:-1]

        overrides[match.group('key').lower()] = raw
        position = match.end()

    return overrides


def split_invocation(invocation_arguments: Sequence[str]) -> Tuple[str, str]:
    """
    Split ``sys.argv``-style arguments into experiment name and override fragment.

    The invoking command is discarded, the next argument is the experiment
    name and the remaining arguments are joined into one fragment.

    Raises:
        ValueError: If no usable experiment name is present
    """
    arguments = list(invocation_arguments)[1:]
    if not arguments or not arguments[0].strip():
        raise ValueError("no experiment name was given")

    experiment_name = arguments[0].strip()
    if '=' in experiment_name:
        raise ValueError(f"expected an experiment name before overrides, got '{experiment_name}'")

    return experiment_name, ' '.join(arguments[1:])


def parse_physics_section(section: Any, n_columns: int) -> Tuple[Tuple[PhysicsColumn, ...], Optional[str]]:
    """
    Overlay the physics_config section onto n_columns unset columns.

    Returns:
        (columns, physics_suite_dir or None)

    Raises:
        ConfigurationError: If the section is malformed or lists more entries
            than there are columns
    """
    if not isinstance(section, Mapping):
        raise ConfigurationError("The physics_config section is missing or is not a mapping")

    unknown = [key for key in section if str(key).lower() not in PHYSICS_CONFIG_FIELDS]
    if unknown:
        raise ConfigurationError(f"Unknown physics_config variable(s): {', '.join(map(str, unknown))}")

    suites = _as_list(section.get('physics_suite', []))
    n_fields = _as_list(section.get('n_phy_fields', []))

    if len(suites) > n_columns or len(n_fields) > n_columns:
        raise ConfigurationError(
            f"physics_config lists {len(suites)} physics suites and {len(n_fields)} n_phy_fields "
            f"for n_columns = {n_columns}. Check that the number of specified physics suites and "
            f"n_phy_fields are not greater than n_columns."
        )

    columns = [PhysicsColumn() for _ in range(n_columns)]
    for i, suite in enumerate(suites):
        if not isinstance(suite, str):
            raise ConfigurationError(f"physics_suite({i + 1}) is not a string: {suite!r}")
        columns[i] = replace(columns[i], suite=suite.strip() or UNSET_SUITE)
    for i, count in enumerate(n_fields):
        if isinstance(count, bool) or not isinstance(count, int):
            raise ConfigurationError(f"n_phy_fields({i + 1}) is not an integer: {count!r}")
        columns[i] = replace(columns[i], n_phy_fields=count)

    suite_dir = section.get('physics_suite_dir')
    if suite_dir is not None and not isinstance(suite_dir, str):
        raise ConfigurationError(f"physics_suite_dir is not a string: {suite_dir!r}")

    return tuple(columns), suite_dir


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def reconcile_physics(columns: Sequence[PhysicsColumn],
                      confirm: Callable[[str], bool],
                      source: str = "the experiment file") -> Tuple[PhysicsColumn, ...]:
    """
    Resolve columns that have no physics suite.

    Column 1 without a suite is fatal. At the first later column without a
    suite the user is asked once whether unset columns should use the last
    fully specified column (the one before the gap); every unset column then
    inherits its suite and field count. Columns with a suite but no field
    count only produce a warning.

    Args:
        columns: Per-column physics after overlaying the file
        confirm: Callable asking a yes/no question
        source: Name of the file, used in messages

    Raises:
        ConfigurationError: If column 1 has no physics suite
        ConfigurationAborted: If the user declines inheritance
    """
    columns = list(columns)
    if not columns or not columns[0].suite_set:
        raise ConfigurationError(
            f"No physics suites were specified in {source}. Please edit this file and start again.",
            {'source': source}
        )

    last_specified = None
    for i, column in enumerate(columns):
        if column.suite_set:
            if not column.fields_set:
                logger.warning(
                    f"The variable n_phy_fields was not initialized for the physics suite {column.suite} "
                    f"(column {i + 1}). Please edit {source} to contain values of this variable for each suite."
                )
            continue

        if last_specified is None:
            last_specified = i - 1
            question = (
                f"Too few physics suites were specified for the number of columns in {source}. "
                f"All columns with unspecified physics are set to the last specified suite "
                f"({columns[last_specified].suite}). Is this the desired behavior (y/n)?"
            )
            if not confirm(question):
                raise ConfigurationAborted(
                    f"Please edit {source} to contain the same number of physics suites as columns "
                    f"and start again.",
                    {'source': source, 'first_unset_column': i + 1}
                )
        columns[i] = columns[last_specified]

    return tuple(columns)


def unset_physics(n_columns: int) -> Tuple[PhysicsColumn, ...]:
    """One column per n_columns with neither suite nor field count set."""
    return tuple(PhysicsColumn() for _ in range(n_columns))


def check_n_columns(config: CaseConfig) -> None:
    """Raise ConfigurationError if the record has no columns to allocate physics for."""
    if config.n_columns < 1:
        raise ConfigurationError(f"n_columns must be at least 1, got {config.n_columns}",
                                 {'n_columns': config.n_columns})


def validate_case_config(config: CaseConfig) -> List[str]:
    """
    Check selector values and ranges of a resolved configuration.

    Returns:
        List of warning messages (empty when everything looks consistent)

    Raises:
        ConfigurationError: If n_columns is smaller than 1
    """
    check_n_columns(config)

    warnings = []
    if config.time_scheme not in (1, 2):
        warnings.append(f"time_scheme must be 1 (forward Euler) or 2 (filtered leapfrog), got {config.time_scheme}")
    for name in ('thermo_forcing_type', 'mom_forcing_type'):
        if getattr(config, name) not in (1, 2, 3):
            warnings.append(f"{name} must be 1, 2 or 3, got {getattr(config, name)}")
    if config.reference_profile_choice not in (1, 2):
        warnings.append(f"reference_profile_choice must be 1 or 2, got {config.reference_profile_choice}")
    for name in ('dt', 'runtime', 'output_frequency', 'swrad_frequency', 'lwrad_frequency', 'relax_time'):
        if getattr(config, name) <= 0:
            warnings.append(f"{name} must be positive, got {getattr(config, name)}")
    if config.n_levels < 1:
        warnings.append(f"n_levels must be positive, got {config.n_levels}")
    if not 1 <= config.month <= 12:
        warnings.append(f"month must be between 1 and 12, got {config.month}")
    if not 1 <= config.day <= 31:
        warnings.append(f"day must be between 1 and 31, got {config.day}")
    if not 0 <= config.hour <= 23:
        warnings.append(f"hour must be between 0 and 23, got {config.hour}")
    return warnings


# =============================================================================
# PERSISTENCE AND CONSOLE I/O
# =============================================================================

def format_case_config(config: CaseConfig) -> str:
    """Render the case_config section as it is written to disk."""
    return yaml.safe_dump({'case_config': config.case_config_section()},
                          default_flow_style=False, sort_keys=False)


def save_case_config(config: CaseConfig, output_dir: Optional[str] = None) -> Path:
    """
    Write the case_config section to ``<output_dir>/<experiment_name>.yaml``.

    Args:
        config: Resolved configuration
        output_dir: Directory to write to (default: config.output_dir)

    Returns:
        Path of the written file
    """
    output_path = Path(output_dir or config.output_dir) / f"{config.experiment_name}.yaml"
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        f.write(format_case_config(config))

    logger.info(f"Resolved case configuration written to {output_path}")
    return output_path


def load_case_config(config_path: str) -> CaseConfig:
    """
    Read a case_config section (for example a persisted record) over the defaults.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the section is missing or malformed
    """
    config_path = Path(config_path)
    with open(config_path, 'r') as f:
        sections = yaml.safe_load(f) or {}

    if not isinstance(sections, Mapping) or 'case_config' not in sections:
        raise ValueError(f"No case_config section found in {config_path}")

    return apply_overrides(CaseConfig(experiment_name=config_path.stem), sections['case_config'] or {})


def prompt_yes_no(question: str, input_func: Callable[[str], str] = input) -> bool:
    """
    Ask a yes/no question on the console.

    Only an answer starting with 'y' or 'Y' counts as yes; end of input
    counts as no.
    """
    try:
        response = input_func(f"{question} ")
    except EOFError:
        return False
    return response.strip()[:1] in ('y', 'Y')


# =============================================================================
# RESOLVER
# =============================================================================

class ConfigResolver:
    """
    Resolve the configuration of one SCM experiment from defaults, the
    experiment file and command-line overrides.
    """

    def __init__(self, config_dir: str = "../case_config",
                 prompt: Optional[Callable[[str], bool]] = None,
                 persist: bool = True):
        """
        Initialize the resolver.

        Args:
            config_dir: Directory holding ``<experiment_name>.yaml`` files
            prompt: Callable asking a yes/no question (default: console prompt)
            persist: Write the resolved record to the output directory
        """
        self.config_dir = Path(config_dir)
        self.prompt = prompt or prompt_yes_no
        self.persist = persist
        self.logger = logging.getLogger(self.__class__.__name__)

    def experiment_path(self, experiment_name: str) -> Path:
        return self.config_dir / f"{experiment_name}.yaml"

    def resolve(self, invocation_arguments: Sequence[str]) -> CaseConfig:
        """
        Resolve the configuration for a ``sys.argv``-style argument list.

        Args:
            invocation_arguments: [command, experiment_name, key=value, ...]

        Returns:
            Frozen CaseConfig with one resolved physics entry per column

        Raises:
            ConfigurationError: For unrecoverable configuration problems
            ConfigurationAborted: If the user declines to continue
        """
        defaults = CaseConfig()

        try:
            experiment_name, fragment = split_invocation(invocation_arguments)
        except ValueError as e:
            self.logger.error(f"There was an error reading from the command line: {e}")
            config = replace(defaults, experiment_name=defaults.case_name,
                             physics=unset_physics(defaults.n_columns))
            self.logger.warning("No physics_config was read; physics suites are not specified")
            self._confirm(config, "Continue with default values? (y/n):")
            return self._finish(config)

        errors = []
        config = replace(defaults, experiment_name=experiment_name)
        path = self.experiment_path(experiment_name)
        sections = self._read_experiment_file(path, errors)

        if sections is not None:
            try:
                if 'case_config' not in sections:
                    raise ValueError("section not found")
                config = apply_overrides(config, sections['case_config'] or {})
            except ValueError as e:
                self._record(errors, f"There was an error reading the case_config section in the file {path}: {e}")

        self.logger.info("Loading optional case_config variables from command line...")
        try:
            config = apply_overrides(config, parse_override_fragment(fragment))
        except ValueError as e:
            self._record(errors, f"There was an error reading the optional case_config variables "
                                 f"from the command line: {e}")

        check_n_columns(config)

        suite_dir = None
        if sections is not None:
            columns, suite_dir = parse_physics_section(sections.get('physics_config'), config.n_columns)
        else:
            columns = unset_physics(config.n_columns)
        config = replace(config, physics=reconcile_physics(columns, self.prompt, source=str(path)),
                         physics_suite_dir=suite_dir or config.physics_suite_dir)

        if errors:
            self.logger.error(
                "Since there was an error either reading the experiment file or reading case_config "
                "variables from the command line, the values in use are some combination of the default "
                "values and the values that were able to be read. Please look over the values below to "
                "make sure they are set as intended."
            )
            self._confirm(config, "Continue with these values? (y/n):")

        return self._finish(config)

    def _read_experiment_file(self, path: Path, errors: List[str]) -> Optional[Dict[str, Any]]:
        try:
            with open(path, 'r') as f:
                content = f.read()
        except OSError as e:
            self._record(errors, f"There was an error opening the file {path}: {e}")
            return None

        try:
            sections = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"There was an error reading the file {path}; the physics_config section "
                f"cannot be read: {e}",
                {'path': str(path)}
            ) from e

        if not isinstance(sections, Mapping):
            raise ConfigurationError(f"The file {path} does not contain named sections", {'path': str(path)})
        return dict(sections)

    def _record(self, errors: List[str], message: str) -> None:
        errors.append(message)
        self.logger.error(message)

    def _confirm(self, config: CaseConfig, question: str) -> None:
        print(format_case_config(config))
        if not self.prompt(question):
            self.logger.error("Stopping...")
            raise ConfigurationAborted("The user declined to continue with the displayed configuration",
                                       {'experiment_name': config.experiment_name})

    def _finish(self, config: CaseConfig) -> CaseConfig:
        for message in validate_case_config(config):
            self.logger.warning(message)
        if self.persist:
            save_case_config(config)
        return config
