"""Debug script: tick trace of one request plus LogUnit/ExpUnit error curves."""

import math

import numpy as np
import matplotlib.pyplot as plt

from fpbs import PipelineConfig, PipelineRequest, SimulationTimeoutError, setup_logging
from fpbs.core.black_scholes import OptionType, d1, d2, option_price
from fpbs.core.fixed_point import from_real, to_real
from fpbs.pipeline.runner import run_request
from fpbs.units.exp import ExpInputs, ExpPhase, ExpUnit
from fpbs.units.log import LogInputs, LogPhase, LogUnit

setup_logging(level="INFO")

# Request to debug (change as needed)
SPOT, STRIKE, TIME, VOL, RATE = 105.0, 100.0, 0.5, 0.2, 0.05
OPTION_TYPE = OptionType.CALL

config = PipelineConfig.from_env()
request = PipelineRequest.from_reals(SPOT, STRIKE, TIME, VOL, RATE, OPTION_TYPE)

print("=== Request ===")
print(f"S0={SPOT}  K={STRIKE}  T={TIME}  sigma={VOL}  r={RATE}  type={OPTION_TYPE.value}")
print(f"Config: watchdog={config.watchdog_ticks}, stage_timeout={config.stage_timeout_ticks}, "
      f"norm_latency={config.norm_cdf_latency}, policy={config.completion_policy.value}")
print()

trace = []
try:
    result = run_request(request, config=config, trace=trace)
except SimulationTimeoutError as e:
    print(f"Simulation failed: {e}")
    raise SystemExit(1)

# Tick trace, printed only when a phase or handshake line changes
print("=== Tick Trace ===")
print("Tick   Top phase            D1D2 phase        d1d2 b/d/v  norm b/d/v  comb b/d/v  price")
print("-" * 92)
prev = None
for row in trace:
    key = (row.top_phase, row.d1d2_phase, row.d1d2, row.norm, row.combiner)
    if key == prev:
        continue
    prev = key
    flags = [
        "".join("1" if f else "0" for f in (hs.busy, hs.done, hs.valid))
        for hs in (row.d1d2, row.norm, row.combiner)
    ]
    print(f"{row.tick:>4}   {row.top_phase:<20} {row.d1d2_phase:<17} "
          f"{flags[0]:>10}  {flags[1]:>10}  {flags[2]:>10}  {to_real(row.option_price):.6f}")
print()

# Fixed-point vs floating-point reference
ref_d1 = d1(SPOT, [STRIKE], [VOL], TIME, RATE)[0]
ref_d2 = d2(SPOT, [STRIKE], [VOL], TIME, RATE)[0]
ref_price = option_price(SPOT, [STRIKE], [VOL], TIME, RATE, OPTION_TYPE)[0]

print("=== Result ===")
print(f"Outcome: {result.outcome.value}  ticks={result.ticks}")
if result.defaulted:
    print(f"Defaulted sub-results: {sorted(result.defaulted)}")
if result.faults:
    print(f"Faults: {sorted(result.faults)}")
print("Quantity    Fixed        Hex          Reference    Diff")
print("-" * 60)
for name, fx, ref in [
    ("d1", result.d1, ref_d1),
    ("d2", result.d2, ref_d2),
    ("price", result.option_price, ref_price),
]:
    print(f"{name:<8}  {fx.real:>10.6f}   {fx.hex}   {ref:>10.6f}   {fx.real - ref:>+.2e}")
print()


def run_unit(unit, inputs_cls, idle_phase, x):
    state = unit.step(unit.initial_state(), inputs_cls(True, x))
    while not state.done:
        state = unit.step(state, inputs_cls(False, x))
    result = state
    while state.phase is not idle_phase:
        state = unit.step(state, inputs_cls(False, x))
    return to_real(result.result)


# === Plot ===
log_x = np.linspace(0.05, 10.0, 400)
log_err = [
    run_unit(LogUnit(), LogInputs, LogPhase.IDLE, from_real(x)) - math.log(to_real(from_real(x)))
    for x in log_x
]
exp_x = np.linspace(-1.0, 3.0, 200)
exp_err = [
    run_unit(ExpUnit(), ExpInputs, ExpPhase.IDLE, from_real(x)) - math.exp(-to_real(from_real(x)))
    for x in exp_x
]

fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(10, 8))

ax1.plot(log_x, log_err, '-', color='blue', linewidth=1)
for k in range(-4, 4):
    ax1.axvline(2.0 ** k, color='gray', linestyle='--', alpha=0.3)
ax1.axhline(0, color='black', linewidth=0.5)
ax1.set_xscale('log', base=2)
ax1.set_xlabel('x')
ax1.set_ylabel('LogUnit(x) - ln(x)')
ax1.set_title('LogUnit error (exact at powers of two)')
ax1.grid(True, alpha=0.3)

ax2.plot(exp_x, exp_err, '-', color='red', linewidth=1)
ax2.axhline(0, color='black', linewidth=0.5)
ax2.set_xlabel('x')
ax2.set_ylabel('ExpUnit(x) - exp(-x)')
ax2.set_title('ExpUnit error (8-term Taylor series)')
ax2.grid(True, alpha=0.3)

plt.tight_layout()
plt.savefig('debug_units.png', dpi=150)
print("Chart saved to: debug_units.png")
plt.show()
