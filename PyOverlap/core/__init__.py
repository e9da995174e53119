"""Core algorithms for annotation overlap analysis.

- intervals: interval-set algebra (flatten, excise, intersect, duration)
- background: background segments and breakpoints
- registry: per-segment event registry built from annotation lookups
- shuffle / eventperm / persons: randomization strategies
- statistics / contrast: per-replicate statistics
- accumulator: null distribution accumulation
"""
