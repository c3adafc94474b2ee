# User-facing strings
class Strings:
    # Command usage
    USAGE_CREATE = "{prefix}create <survey_name>"
    USAGE_RELOAD = "{prefix}reload"
    USAGE_SET_CHANNEL = "{prefix}set_channel <survey_name>"
    USAGE_SET_MESSAGE = "{prefix}set_message <message_id> <survey_name>"

    # Help embed
    HELP_TITLE = "SurveyBot Help"
    HELP_CREATE = "Create a new survey for this server with the specified name"
    HELP_RELOAD = "Reload configuration and data file for the current server"
    HELP_SET_CHANNEL = "Set the channel where the responses for the specified survey will be posted"
    HELP_SET_MESSAGE = "Set the message with the specified ID as the starting point for the specified survey"

    # Errors
    COMMAND_SYNTAX_ERROR = "Wrong syntax! Usage: `{usage}`"
    INVALID_SURVEY = "The survey **{name}** doesn't exist on this server."
    SURVEY_ALREADY_EXISTS = "A survey named **{name}** already exists on this server."
    SET_MESSAGE_INVALID_MESSAGE = "Couldn't find a message with this ID in this channel."
    SET_MESSAGE_REACTION_FAILURE = "Couldn't add the survey reaction to this message. Check the bot's permissions and the configured emoji."
    STORAGE_FAILURE = "Couldn't save or read the survey data for this server. Please try again later."
    GENERAL_ERROR = "Something went wrong while executing this command."
    CONFIG_INVALID = "The reloaded configuration is invalid: {error}"

    # Success
    SURVEY_CREATE_SUCCESS = "Survey created! Edit the questions in `{path}` then run `{reload}`."
    RELOAD_SUCCESS = "Configuration and survey data reloaded."
    SET_CHANNEL_SUCCESS = "Responses for **{name}** will be posted in this channel."
    SET_MESSAGE_SUCCESS = "This message now starts the survey **{name}**."

    # Survey session
    SURVEY_COMPLETE = "Thanks! Your answers have been sent."
    TIMEOUT = "⏰ Time's up! Your answers were discarded, react to the survey message again to restart."
    TRANSCRIPT_TITLE = "{survey} - {username}"
