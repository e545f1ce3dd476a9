"""SingaSuper task simulator."""
