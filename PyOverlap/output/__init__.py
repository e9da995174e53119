"""Result emission into stratified sinks and tab-delimited tables."""
