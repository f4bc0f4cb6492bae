"""SolarpunkList community directory research pipeline."""
