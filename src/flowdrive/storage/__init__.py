"""Host settings storage and the credentials section adapter."""
