"""
Rvs Trace Monitor
=================
Records per-cycle (value, done) of every model variable and exports the
trace for HDL testbenches:
- VCD (GTKWave / Verdi), 32-bit vector per variable plus a 1-bit done wire
- JSON, one object per cycle
- $readmemh-style .mem, one line per cycle
"""

import datetime
import json
import logging
import numpy as np

from rvs.evaluator import WORD_BITS, WORD_MASK

logger = logging.getLogger(__name__)


class Monitor:
    """
    Samples a model after each cycle.

    Usage:
        scope = Monitor(model)
        for _ in range(n):
            model.advance_cycle()
            scope.sample()
    """
    def __init__(self, model, names=None):
        self.model = model
        self.names = list(names) if names is not None else list(model.names)
        for name in self.names:
            if name not in model:
                raise KeyError(f"Variable '{name}' not found in model.")
        self.history = {k: [] for k in self.names}
        self.done_history = {k: [] for k in self.names}
        self.time = []

    def sample(self):
        """Records the model's most recent cycle."""
        self.time.append(self.model.cycle)
        for name in self.names:
            self.history[name].append(self.model.current_value(name))
            self.done_history[name].append(self.model.current_done(name))

    def run(self, cycles):
        """Advances the model `cycles` times, sampling after each."""
        for _ in range(cycles):
            self.model.advance_cycle()
            self.sample()
        return self

    def __len__(self):
        return len(self.time)

    def as_array(self, dtype=np.int64):
        """Values as a (cycles, variables) array, columns in self.names order."""
        if not self.time:
            return np.zeros((0, len(self.names)), dtype=dtype)
        return np.array([self.history[n] for n in self.names], dtype=dtype).T

    def done_array(self):
        if not self.time:
            return np.zeros((0, len(self.names)), dtype=bool)
        return np.array([self.done_history[n] for n in self.names], dtype=bool).T

    def records(self):
        """One dict per sampled cycle: {"cycle": c, name: value, ...}."""
        out = []
        for t, cycle in enumerate(self.time):
            row = {"cycle": cycle}
            for name in self.names:
                row[name] = self.history[name][t]
            out.append(row)
        return out

    # ---- exporters ----

    def export_vcd(self, filename="wave.vcd", period_ns=10):
        """
        Exports the recorded history to a VCD (Value Change Dump) file.

        Each variable is a 32-bit wire; its done flag is a 1-bit wire named
        <name>_done. Values are written as binary vectors.
        """
        logger.info("Exporting %d cycles to %s", len(self.time), filename)
        with open(filename, "w") as f:
            date_str = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            f.write(f"$date\n  {date_str}\n$end\n")
            f.write("$version\n  rvs stimulus trace\n$end\n")
            f.write("$timescale\n  1ns\n$end\n")
            f.write("$scope module rvs $end\n")

            symbols = {}
            done_symbols = {}
            for i, name in enumerate(self.names):
                symbols[name] = _vcd_symbol(2 * i)
                done_symbols[name] = _vcd_symbol(2 * i + 1)
                f.write(f"$var wire {WORD_BITS} {symbols[name]} {name} $end\n")
                f.write(f"$var wire 1 {done_symbols[name]} {name}_done $end\n")

            f.write("$upscope $end\n")
            f.write("$enddefinitions $end\n")

            for t in range(len(self.time)):
                changes = []
                for name in self.names:
                    val = self.history[name][t]
                    done = self.done_history[name][t]
                    if t == 0 or val != self.history[name][t - 1]:
                        changes.append(f"b{val & WORD_MASK:b} {symbols[name]}")
                    if t == 0 or done != self.done_history[name][t - 1]:
                        changes.append(f"{int(done)}{done_symbols[name]}")
                if changes:
                    f.write(f"#{t * period_ns}\n")
                    f.write("\n".join(changes) + "\n")

    def save_json(self, filename="stimulus.json"):
        """Save the trace as a JSON list of per-cycle objects."""
        with open(filename, "w") as f:
            json.dump(self.records(), f, indent=2)
        logger.info("Saved %d cycles to %s", len(self.time), filename)

    def save_mem(self, filename="stimulus.mem"):
        """Save the trace in .mem format for Verilog $readmemh."""
        with open(filename, "w") as f:
            f.write("// " + " ".join(self.names) + "\n")
            for t in range(len(self.time)):
                f.write(" ".join(f"{self.history[n][t] & WORD_MASK:08x}" for n in self.names) + "\n")
        logger.info("Saved %d cycles to %s", len(self.time), filename)


def _vcd_symbol(i):
    """Printable VCD identifier codes: '!' .. '~', then multi-character."""
    chars = []
    i += 1
    while i > 0:
        i, rem = divmod(i - 1, 94)
        chars.append(chr(33 + rem))
    return "".join(chars)
