"""Engine client interface, container manager and its image, container, update, volume, plugin and janitor parts."""