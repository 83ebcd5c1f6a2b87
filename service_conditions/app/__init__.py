"""
Rule conditions package.

Decides whether a cart, product or customer satisfies a merchant-authored
rule. It provides:

- app.conditions: Condition tree model, evaluator and codec.
- app.rule: Rule owner holding the persisted tree and its decoded cache.
- app.consumers: Payment restriction, price rule and customer segment
  rule types with their failure policies.

Guidelines:
- Evaluation is synchronous and CPU-only; callers materialize attributes
  and item collections beforehand.
- A misconfigured rule must never abort the request that evaluates it;
  report through diagnostics, logs and metrics instead.
"""
