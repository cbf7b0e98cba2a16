"""Visual regression testing for React Native Storybook projects."""

__version__ = "0.1.0"
