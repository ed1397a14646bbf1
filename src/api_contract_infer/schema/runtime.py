"""Sandboxed runtime loading of validator modules.

Used only when static extraction cannot see a schema. The module is loaded in
a separate `node` process that registers ts-node when it is installed, looks
the member up and converts it with joi-to-json. Nothing is evaluated inside
this interpreter.
"""

import json
import logging
import shutil
import subprocess
import threading
from pathlib import Path
from typing import Any

from api_contract_infer.errors import SchemaConversionError

logger = logging.getLogger(__name__)

PROBE_SCRIPT = "require.resolve('joi-to-json'); process.stdout.write('ok')"

LOADER_SCRIPT = r"""
const [file, group, member] = process.argv.slice(1);
try {
  require('ts-node').register({ transpileOnly: true, compilerOptions: { module: 'commonjs' } });
} catch (e) {}
const parse = require('joi-to-json');
const mod = require(file.replace(/\.(ts|js)$/, ''));
const stripped = group.replace(/Schemas$/, '');
let schema = null;
if (group && mod[group] && mod[group][member]) schema = mod[group][member];
else if (group && mod[stripped] && mod[stripped][member]) schema = mod[stripped][member];
else if (mod[member]) schema = mod[member];
if (!schema || (typeof schema !== 'object' && typeof schema !== 'function')) {
  process.stderr.write('schema ' + member + ' not found');
  process.exit(2);
}
process.stdout.write(JSON.stringify(parse(schema, 'open-api', {}, { required: true })));
"""


class RuntimeLoaderGate:
    """One-time availability check plus per-call subprocess loading.

    The probe runs at most once per gate; later calls reuse its outcome, so
    repeated failures do not spawn a process each time.
    """

    def __init__(self, node_binary: str = "node", cwd: Path | None = None, timeout: float = 30.0):
        self.node_binary = node_binary
        self.cwd = cwd
        self.timeout = timeout
        self._lock = threading.Lock()
        self._available: bool | None = None

    def available(self) -> bool:
        with self._lock:
            if self._available is None:
                self._available = self._probe()
                if not self._available:
                    logger.warning("Runtime validator loading unavailable (%s with joi-to-json)", self.node_binary)
            return self._available

    def _probe(self) -> bool:
        if shutil.which(self.node_binary) is None:
            return False
        try:
            result = subprocess.run(
                [self.node_binary, "-e", PROBE_SCRIPT],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=self.cwd,
            )
        except (OSError, subprocess.SubprocessError):
            return False
        return result.returncode == 0

    def load(self, module_path: Path, group: str | None, member: str) -> dict[str, Any]:
        """Load `group.member` (or the bare export `member`) from a validator module."""
        if not self.available():
            raise SchemaConversionError(f"Cannot load {member} at runtime: Node.js with joi-to-json not found")
        try:
            result = subprocess.run(
                [self.node_binary, "-e", LOADER_SCRIPT, str(module_path.resolve()), group or "", member],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=self.cwd,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise SchemaConversionError(f"Runtime load of {member} failed: {exc}") from exc
        if result.returncode != 0:
            raise SchemaConversionError(f"Runtime load of {member} failed: {result.stderr.strip()[:200]}")
        try:
            schema = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise SchemaConversionError(f"Runtime load of {member} returned invalid JSON") from exc
        if not isinstance(schema, dict):
            raise SchemaConversionError(f"Runtime load of {member} did not return a schema object")
        logger.debug("Loaded %s from %s at runtime", member, module_path)
        return schema
