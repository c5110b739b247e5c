from typing import Dict, List, Sequence, Union

from crfseek.domain.errors import EmptyInputError
from crfseek.domain.models import AggregatePolicy, SearchResult

ResultValues = Sequence[Union[int, SearchResult]]


def found_values(results: ResultValues) -> List[int]:
    """CRF values of successful results, in input order. Plain ints pass through."""
    values: List[int] = []
    for item in results:
        if isinstance(item, SearchResult):
            if item.found and item.crf is not None:
                values.append(item.crf)
        else:
            values.append(int(item))
    return values


def _truncating_mean(values: List[int]) -> int:
    total = sum(values)
    quotient = abs(total) // len(values)
    return quotient if total >= 0 else -quotient


def aggregate(results: ResultValues, policy: Union[AggregatePolicy, str] = AggregatePolicy.MINIMUM) -> int:
    """Reduces per-clip CRFs to the single value used for the final encode.

    minimum: smallest CRF (highest fidelity clip wins).
    average: sum // count, truncated toward zero.
    """
    policy = AggregatePolicy.parse(policy)
    values = found_values(results)
    if not values:
        raise EmptyInputError("no clip results to aggregate")
    if policy == AggregatePolicy.MINIMUM:
        return min(values)
    return _truncating_mean(values)


def summarize(results: ResultValues) -> Dict[str, int]:
    """Both policies at once, for reporting."""
    return {
        AggregatePolicy.MINIMUM.value: aggregate(results, AggregatePolicy.MINIMUM),
        AggregatePolicy.AVERAGE.value: aggregate(results, AggregatePolicy.AVERAGE),
    }
