"""
Biological parameters of the diploid Wright-Fisher model.

BIOLOGICAL MODEL:
================
- Diploid population of N individuals, i.e. 2N gene copies
- Two alleles: "A" (tracked) and "a"
- Genotype fitnesses: AA = 1+s, Aa = 1+s*h, aa = 1
- Mutation A -> a at rate u (forward), a -> A at rate v (backward)
- Binomial sampling of 2N copies every generation

The chain on allele counts 0..2N has two absorbing boundaries when u = v = 0.
Only the 2N-1 interior counts are transient states; state index i stands for
i+1 copies of "A".
"""

from __future__ import annotations

import numbers
from dataclasses import dataclass

from wfes.errors import ParameterError

# Above this population size the solve can take hours; refused unless forced.
MAX_POPULATION_SIZE = 500_000


@dataclass(frozen=True)
class ModelParameters:
    """
    Immutable parameter set for one run.

    Parameters:
    -----------
    population_size : int
        Number of diploid individuals N (2N gene copies), N >= 2
    selection : float
        Selection coefficient s of the "A" allele, s > -1
    forward_mutation_rate : float
        Rate u at which "A" mutates into "a"
    backward_mutation_rate : float
        Rate v at which "a" mutates into "A"
    dominance_coefficient : float
        Proportion h of the selective advantage carried by heterozygotes, 0 <= h <= 1
    """

    population_size: int
    selection: float
    forward_mutation_rate: float
    backward_mutation_rate: float
    dominance_coefficient: float

    def __post_init__(self):
        self._validate_parameters()

    def _validate_parameters(self):
        """Validate biological parameters."""
        N = self.population_size
        if isinstance(N, bool) or not isinstance(N, numbers.Integral):
            raise ParameterError(f"Population size N must be an integer, got {N!r}")
        if N < 2:
            raise ParameterError(f"Population size N must be at least 2, got {N}")
        if not self.selection > -1:
            raise ParameterError(
                f"Selection coefficient s must be > -1 for fitness > 0, got {self.selection}"
            )
        for name, rate in (
            ("forward_mutation_rate", self.forward_mutation_rate),
            ("backward_mutation_rate", self.backward_mutation_rate),
        ):
            if not 0.0 <= rate <= 1.0:
                raise ParameterError(f"Mutation rate {name} must be in [0,1], got {rate}")
        if not 0.0 <= self.dominance_coefficient <= 1.0:
            raise ParameterError(
                f"Dominance coefficient h must be in [0,1], got {self.dominance_coefficient}"
            )

    @property
    def copies(self) -> int:
        """Number of gene copies 2N."""
        return 2 * int(self.population_size)

    @property
    def matrix_size(self) -> int:
        """Number of transient states 2N-1."""
        return self.copies - 1

    @property
    def max_mutation_rate(self) -> float:
        return 1.0 / self.copies


def check_sanity(params: ModelParameters, force: bool = False) -> None:
    """
    Reject parameter sets that are valid but probably not what the user meant.

    Large populations make the factorization very slow, and mutation rates
    above 1/2N break the weak-mutation regime the model assumes. Both checks
    are skipped when ``force`` is set.
    """
    if force:
        return
    if params.population_size > MAX_POPULATION_SIZE:
        raise ParameterError(
            f"population_size={params.population_size} exceeds {MAX_POPULATION_SIZE}",
            user_message=(
                "The population_size parameter is too large - the computation "
                "might take a very long time. Use `--force` to override"
            ),
            context={"population_size": params.population_size},
        )
    limit = params.max_mutation_rate
    if params.forward_mutation_rate > limit or params.backward_mutation_rate > limit:
        raise ParameterError(
            f"mutation rate above 1/2N={limit:g}",
            user_message=(
                "The mutation rate might violate the Wright-Fisher assumptions. "
                "Use `--force` to override"
            ),
            context={
                "forward_mutation_rate": params.forward_mutation_rate,
                "backward_mutation_rate": params.backward_mutation_rate,
                "limit": limit,
            },
        )
