"""
Structural interfaces between the pipeline stages.

Anything with the right attributes satisfies these protocols; nothing has
to subclass them. That is how a user-written sampler or data container
takes the place of the built-in ones. Collaborators are always passed in
as arguments, never looked up globally.
"""

from typing import Protocol, TypeVar, Any, runtime_checkable, TYPE_CHECKING

if TYPE_CHECKING:
    from pyposterior.core.result import Result
    from pyposterior.model.spec import ModelSpec
    from pyposterior.sampling.design import SamplerDesign
    from pyposterior.sampling._common import DrawsParams

P = TypeVar('P')
D = TypeVar('D')


@runtime_checkable
class DataSource(Protocol):
    """
    What a model's density may assume about its data argument.

    DataPayload is the built-in implementation.
    """

    @property
    def n_observations(self) -> int:
        ...

    @property
    def metadata(self) -> dict[str, Any]:
        ...

    def supports(self, capability: str) -> bool:
        """True if the capability is present; False for unknown names."""
        ...


@runtime_checkable
class Backend(Protocol[D, P]):
    """
    A stateless computation from a frozen design to Result[P].

    Names read '<device>_<algorithm>', e.g. 'cpu_bridge_normal'.
    """

    @property
    def name(self) -> str:
        ...

    def solve(self, design: D) -> 'Result[P]':
        """
        Raises:
            ConvergenceError: An iterative estimate did not converge.
            NumericalError: The arithmetic broke down.
        """
        ...


@runtime_checkable
class Sampler(Protocol):
    """
    Contract for an MCMC sampler collaborator.

    Given a model, data and a sampling design, a sampler returns
    post-warmup draws for every requested chain. Its internal mechanics
    are its own business; only this contract matters to the rest of the
    pipeline.

    Failure modes:
        - non-convergence: reported in the result's warnings, not raised
        - divergent iterations: flagged in sample statistics, run continues
        - no valid initial point: SamplerInitializationError (fatal)
    """

    @property
    def name(self) -> str:
        ...

    def sample(
        self,
        model: 'ModelSpec',
        data: 'DataSource',
        design: 'SamplerDesign',
    ) -> 'Result[DrawsParams]':
        ...
