import pytest

from pawmap.obs import metrics


@pytest.mark.parametrize(
	"radius,label",
	[(0, "100"), (100, "100"), (100.5, "250"), (500, "500"), (1200, "2500"), (50000, "50000"), (75000, "+Inf")],
)
def test_radius_bucket(radius, label):
	assert metrics.radius_bucket(radius) == label


def test_radius_label_values_stay_bounded():
	for radius in range(1, 50001, 250):
		metrics.proximity_query(radius + 0.5, 1)

	labels = {
		sample.labels["radius"]
		for metric in metrics.PROXIMITY_QUERIES.collect()
		for sample in metric.samples
		if sample.name.endswith("_total")
	}
	assert labels <= {str(bound) for bound in metrics.RADIUS_BUCKETS} | {"+Inf"}
